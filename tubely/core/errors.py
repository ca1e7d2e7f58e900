"""Error taxonomy for the video ingest pipeline.

Each error carries the HTTP status it maps to and a short snake_case code that
is returned to the caller. The underlying cause is chained with ``raise ... from``
and logged, never sent over the wire.
"""

from __future__ import annotations

from fastapi import status


class TubelyError(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "internal_error"

    def __init__(self, code: str | None = None, message: str | None = None):
        if code is not None:
            self.code = code
        super().__init__(message or self.code)


class InvalidInputError(TubelyError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "invalid_input"


class UploadTooLargeError(InvalidInputError):
    code = "upload_too_large"


class UnsupportedMediaTypeError(InvalidInputError):
    code = "unsupported_media_type"


class AuthError(TubelyError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "unauthorized"


class NotOwnerError(AuthError):
    code = "not_video_owner"


class NotFoundError(TubelyError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "video_not_found"


class StagingError(TubelyError):
    code = "staging_failed"


class RemuxError(TubelyError):
    code = "remux_failed"

    def __init__(self, message: str, stderr: str = ""):
        super().__init__(message=message)
        self.stderr = stderr


class StorageError(TubelyError):
    code = "storage_failed"


class SigningError(TubelyError):
    code = "signing_failed"


class MalformedReferenceError(SigningError):
    code = "malformed_reference"


__all__ = [
    "TubelyError",
    "InvalidInputError",
    "UploadTooLargeError",
    "UnsupportedMediaTypeError",
    "AuthError",
    "NotOwnerError",
    "NotFoundError",
    "StagingError",
    "RemuxError",
    "StorageError",
    "SigningError",
    "MalformedReferenceError",
]

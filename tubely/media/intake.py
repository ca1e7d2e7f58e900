from __future__ import annotations

import re
from collections.abc import AsyncIterator
from dataclasses import dataclass

from starlette.datastructures import FormData, UploadFile
from starlette.formparsers import MultiPartException, MultiPartParser
from starlette.requests import Request

from tubely.core.errors import InvalidInputError, UnsupportedMediaTypeError, UploadTooLargeError

_TOKEN = r"[!#$%&'*+.^_`|~0-9A-Za-z-]+"
_MEDIA_TYPE_RE = re.compile(rf"^\s*(?P<type>{_TOKEN})/(?P<subtype>{_TOKEN})\s*(?:;.*)?$")


@dataclass(slots=True)
class ValidatedUpload:
    """A multipart file part that passed size and content-type checks."""

    form: FormData
    file: UploadFile
    media_type: str

    async def close(self) -> None:
        await self.form.close()


def parse_media_type(value: str | None) -> str:
    """Return the lower-cased ``type/subtype`` of a Content-Type header value.

    Parameters such as ``; codecs=...`` are dropped.

    Raises:
        InvalidInputError: If the value is empty or not a media type.
    """
    if not value:
        raise InvalidInputError("invalid_content_type")
    match = _MEDIA_TYPE_RE.match(value)
    if not match:
        raise InvalidInputError("invalid_content_type")
    return f"{match['type']}/{match['subtype']}".lower()


async def limit_stream(stream: AsyncIterator[bytes], max_bytes: int) -> AsyncIterator[bytes]:
    """Yield chunks from ``stream`` until more than ``max_bytes`` have been seen."""
    received = 0
    async for chunk in stream:
        received += len(chunk)
        if received > max_bytes:
            raise UploadTooLargeError()
        yield chunk


async def read_video_form(
    request: Request,
    *,
    max_bytes: int,
    memory_bytes: int,
    allowed_types: tuple[str, ...],
    field: str = "video",
) -> ValidatedUpload:
    """Parse the multipart body of ``request`` and validate its video part.

    The body is counted while it streams so oversized uploads fail without being
    buffered whole. Up to ``memory_bytes`` of the file part stay in memory, the
    remainder spools to an anonymous temporary file owned by the form.
    """
    declared = request.headers.get("content-length")
    if declared is not None:
        try:
            declared_bytes = int(declared)
        except ValueError as exc:
            raise InvalidInputError("invalid_form") from exc
        if declared_bytes > max_bytes:
            raise UploadTooLargeError()

    content_type = request.headers.get("content-type", "")
    if parse_media_type(content_type or "application/octet-stream") != "multipart/form-data":
        raise InvalidInputError("invalid_form")

    parser = MultiPartParser(request.headers, limit_stream(request.stream(), max_bytes), max_files=1)
    parser.spool_max_size = memory_bytes
    try:
        form = await parser.parse()
    except MultiPartException as exc:
        raise InvalidInputError("invalid_form") from exc

    try:
        part = form.get(field)
        if not isinstance(part, UploadFile):
            raise InvalidInputError("missing_video_file")
        media_type = parse_media_type(part.content_type)
        if media_type not in allowed_types:
            raise UnsupportedMediaTypeError()
    except InvalidInputError:
        await form.close()
        raise

    return ValidatedUpload(form=form, file=part, media_type=media_type)


__all__ = ["ValidatedUpload", "parse_media_type", "limit_stream", "read_video_form"]

from __future__ import annotations

import shutil
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any
from urllib.parse import urlencode

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from .config import Settings
from .errors import SigningError, StorageError
from .logging import get_logger


class ObjectStore(ABC):
    """Remote object store holding published videos."""

    @abstractmethod
    def put_file(self, bucket: str, key: str, path: Path, *, content_type: str) -> None: ...

    @abstractmethod
    def presign_get(self, bucket: str, key: str, *, expires_s: int) -> str: ...

    @abstractmethod
    def delete(self, bucket: str, key: str) -> None: ...

    @abstractmethod
    def exists(self, bucket: str, key: str) -> bool: ...


class LocalObjectStore(ObjectStore):
    """Filesystem-backed object store suitable for development.

    Buckets are directories under ``base_path``. Signed URLs are ``file://`` URIs
    with an ``expires`` query parameter; nothing enforces the expiry locally.
    """

    def __init__(self, base_path: Path):
        self.base_path = base_path
        self.base_path.mkdir(parents=True, exist_ok=True)
        self.logger = get_logger(component="local_object_store")

    def _resolve(self, bucket: str, key: str) -> Path:
        root = (self.base_path / bucket).resolve()
        target = (root / key).resolve()
        if root != target and root not in target.parents:
            raise ValueError(f"Object key escapes bucket: {key}")
        return target

    def put_file(self, bucket: str, key: str, path: Path, *, content_type: str) -> None:
        try:
            target = self._resolve(bucket, key)
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(path, target)
        except (OSError, ValueError) as exc:
            raise StorageError(message=f"Local put failed for {bucket}/{key}: {exc}") from exc
        self.logger.debug("object_put", bucket=bucket, key=key, content_type=content_type)

    def presign_get(self, bucket: str, key: str, *, expires_s: int) -> str:
        try:
            target = self._resolve(bucket, key)
        except ValueError as exc:
            raise SigningError(message=str(exc)) from exc
        query = urlencode({"expires": int(time.time()) + expires_s})
        return f"{target.as_uri()}?{query}"

    def delete(self, bucket: str, key: str) -> None:
        try:
            self._resolve(bucket, key).unlink(missing_ok=True)
        except (OSError, ValueError) as exc:
            raise StorageError(message=f"Local delete failed for {bucket}/{key}: {exc}") from exc

    def exists(self, bucket: str, key: str) -> bool:
        return self._resolve(bucket, key).is_file()


class S3ObjectStore(ObjectStore):
    """S3 (or S3-compatible) object store backed by boto3."""

    def __init__(self, client: Any):
        self._client = client
        self.logger = get_logger(component="s3_object_store")

    @classmethod
    def from_settings(cls, settings: Settings) -> "S3ObjectStore":
        client = boto3.client(
            "s3",
            region_name=settings.s3_region,
            endpoint_url=settings.s3_endpoint_url,
            aws_access_key_id=settings.secrets.aws_access_key_id,
            aws_secret_access_key=settings.secrets.aws_secret_access_key,
            config=Config(signature_version="s3v4"),
        )
        return cls(client)

    def put_file(self, bucket: str, key: str, path: Path, *, content_type: str) -> None:
        try:
            with path.open("rb") as body:
                self._client.put_object(Bucket=bucket, Key=key, Body=body, ContentType=content_type)
        except (BotoCoreError, ClientError, OSError) as exc:
            raise StorageError(message=f"S3 put failed for {bucket}/{key}: {exc}") from exc
        self.logger.info("object_put", bucket=bucket, key=key, content_type=content_type)

    def presign_get(self, bucket: str, key: str, *, expires_s: int) -> str:
        try:
            return self._client.generate_presigned_url(
                "get_object",
                Params={"Bucket": bucket, "Key": key},
                ExpiresIn=expires_s,
            )
        except (BotoCoreError, ClientError) as exc:
            raise SigningError(message=f"Presigning failed for {bucket}/{key}: {exc}") from exc

    def delete(self, bucket: str, key: str) -> None:
        try:
            self._client.delete_object(Bucket=bucket, Key=key)
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(message=f"S3 delete failed for {bucket}/{key}: {exc}") from exc

    def exists(self, bucket: str, key: str) -> bool:
        try:
            self._client.head_object(Bucket=bucket, Key=key)
        except ClientError as exc:
            if exc.response.get("Error", {}).get("Code") in {"404", "NoSuchKey", "NotFound"}:
                return False
            raise StorageError(message=f"S3 head failed for {bucket}/{key}: {exc}") from exc
        return True


def get_object_store(settings: Settings) -> ObjectStore:
    if settings.storage_backend == "local":
        return LocalObjectStore(base_path=Path(settings.local_storage_base_path))
    if settings.storage_backend == "s3":
        return S3ObjectStore.from_settings(settings)
    raise ValueError(f"Unsupported storage backend: {settings.storage_backend}")


__all__ = [
    "ObjectStore",
    "LocalObjectStore",
    "S3ObjectStore",
    "get_object_store",
]

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from tubely.core.errors import MalformedReferenceError, SigningError
from tubely.core.logging import get_logger
from tubely.core.storage import ObjectStore

DEFAULT_URL_TTL_S = 15 * 60


@dataclass(frozen=True, slots=True)
class StoredReference:
    """Location of a published object: bucket plus key, both non-empty."""

    bucket: str
    key: str

    def __post_init__(self) -> None:
        if not isinstance(self.bucket, str) or not self.bucket.strip():
            raise MalformedReferenceError(message="stored reference has no bucket")
        if not isinstance(self.key, str) or not self.key.strip():
            raise MalformedReferenceError(message="stored reference has no key")

    @classmethod
    def from_record(cls, bucket: Optional[str], key: Optional[str]) -> Optional["StoredReference"]:
        """Rebuild a reference from its two persisted columns.

        Returns None when neither column is set; a half-set pair is malformed.
        """
        if bucket is None and key is None:
            return None
        return cls(bucket=bucket or "", key=key or "")


class ReferenceMaterializer:
    """Turns stored references into short-lived signed retrieval URLs.

    Nothing is cached: every call signs afresh.
    """

    def __init__(self, store: ObjectStore, *, ttl_s: int = DEFAULT_URL_TTL_S):
        if ttl_s <= 0:
            raise ValueError("ttl_s must be positive")
        self.store = store
        self.ttl_s = ttl_s
        self.logger = get_logger(component="reference_materializer")

    def materialize(self, reference: Optional[StoredReference]) -> str:
        if reference is None:
            raise MalformedReferenceError(message="no stored reference to sign")
        try:
            url = self.store.presign_get(reference.bucket, reference.key, expires_s=self.ttl_s)
        except SigningError:
            self.logger.error("presign_failed", bucket=reference.bucket, key=reference.key)
            raise
        self.logger.debug("reference_materialized", bucket=reference.bucket, key=reference.key, ttl_s=self.ttl_s)
        return url


__all__ = ["StoredReference", "ReferenceMaterializer", "DEFAULT_URL_TTL_S"]

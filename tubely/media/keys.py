from __future__ import annotations

import secrets

from .probe import Orientation

KEY_RANDOM_BYTES = 32


def build_object_key(orientation: Orientation, extension: str = "mp4") -> str:
    """Return ``{orientation}/{64 hex chars}.{extension}`` from a CSPRNG.

    Uniqueness relies on 256 bits of randomness; no collision check is made.
    """
    return f"{orientation.value}/{secrets.token_hex(KEY_RANDOM_BYTES)}.{extension.lstrip('.')}"


__all__ = ["build_object_key", "KEY_RANDOM_BYTES"]

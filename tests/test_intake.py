from __future__ import annotations

import asyncio

import pytest

from tubely.core.errors import InvalidInputError, UploadTooLargeError
from tubely.media.intake import limit_stream, parse_media_type


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("video/mp4", "video/mp4"),
        ("VIDEO/MP4", "video/mp4"),
        ("video/mp4; codecs=\"avc1.42E01E, mp4a.40.2\"", "video/mp4"),
        ("  video/mp4  ", "video/mp4"),
        ("multipart/form-data; boundary=abc123", "multipart/form-data"),
    ],
)
def test_parse_media_type(value, expected):
    assert parse_media_type(value) == expected


@pytest.mark.parametrize("value", [None, "", "mp4", "video/", "/mp4", "video mp4"])
def test_parse_media_type_rejects_garbage(value):
    with pytest.raises(InvalidInputError) as excinfo:
        parse_media_type(value)
    assert excinfo.value.code == "invalid_content_type"


async def _chunks(*parts: bytes):
    for part in parts:
        yield part


async def _drain(stream) -> bytes:
    return b"".join([chunk async for chunk in stream])


def test_limit_stream_passes_through_within_limit():
    body = asyncio.run(_drain(limit_stream(_chunks(b"abc", b"def"), max_bytes=6)))
    assert body == b"abcdef"


def test_limit_stream_raises_once_limit_is_crossed():
    with pytest.raises(UploadTooLargeError):
        asyncio.run(_drain(limit_stream(_chunks(b"abc", b"def", b"g"), max_bytes=6)))

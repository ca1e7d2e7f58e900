from __future__ import annotations

import re

import pytest

from tubely.media.keys import build_object_key
from tubely.media.probe import Orientation


@pytest.mark.parametrize("orientation", list(Orientation))
def test_key_is_prefixed_by_orientation(orientation):
    key = build_object_key(orientation)
    assert re.fullmatch(rf"{orientation.value}/[0-9a-f]{{64}}\.mp4", key)


def test_extension_is_normalised():
    assert build_object_key(Orientation.wide, ".mov").endswith(".mov")
    assert not build_object_key(Orientation.wide, ".mov").endswith("..mov")


def test_keys_do_not_repeat():
    keys = {build_object_key(Orientation.other) for _ in range(500)}
    assert len(keys) == 500

from __future__ import annotations

import io

import pytest

from tubely.core.config import get_settings
from tubely.core.errors import StagingError
from tubely.media.staging import Stager


def test_stage_copies_source_and_rewinds(tmp_path):
    source = io.BytesIO(b"video-bytes")
    source.read(3)

    with Stager(tmp_path / "staging") as stager:
        staged = stager.stage(source)
        assert staged.parent == tmp_path / "staging"
        assert staged.suffix == ".mp4"
        assert staged.read_bytes() == b"video-bytes"
        assert source.tell() == 0

    assert not staged.exists()


def test_reserved_paths_are_unique_and_removed(tmp_path):
    with Stager(tmp_path) as stager:
        first = stager.reserve(".faststart.mp4")
        second = stager.reserve(".faststart.mp4")
        assert first != second
        assert first.name.startswith("tubely-upload-")
        assert stager.paths == (first, second)

    assert not first.exists()
    assert not second.exists()


def test_cleanup_runs_when_the_block_raises(tmp_path):
    with pytest.raises(RuntimeError):
        with Stager(tmp_path) as stager:
            staged = stager.stage(io.BytesIO(b"data"))
            derived = stager.reserve(".out.mp4")
            derived.write_bytes(b"partial")
            raise RuntimeError("remux exploded")

    assert not staged.exists()
    assert not derived.exists()
    assert list(tmp_path.iterdir()) == []


def test_cleanup_tolerates_already_removed_artifacts(tmp_path):
    with Stager(tmp_path) as stager:
        staged = stager.stage(io.BytesIO(b"data"))
        staged.unlink()
    assert stager.paths == ()


def test_stage_into_unusable_directory_is_a_staging_error(tmp_path):
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("file")
    stager = Stager(blocker)
    with pytest.raises(StagingError):
        stager.stage(io.BytesIO(b"data"))


def test_unusable_staging_directory_fails_on_enter(tmp_path):
    blocker = tmp_path / "occupied"
    blocker.write_text("file")
    with pytest.raises(StagingError) as excinfo:
        with Stager(blocker):
            pass
    assert excinfo.value.code == "staging_failed"


def test_unusable_staging_directory_is_reported_by_the_api(client, owner_headers, tmp_path, monkeypatch):
    blocker = tmp_path / "occupied"
    blocker.write_text("file")
    monkeypatch.setenv("TUBELY_STAGING_DIR", str(blocker))
    get_settings.cache_clear()

    created = client.post("/v1/videos", json={"title": "clip"}, headers=owner_headers)
    resp = client.post(
        f"/v1/videos/{created.json()['video_id']}/upload",
        files={"video": ("clip.mp4", io.BytesIO(b"\x00" * 64), "video/mp4")},
        headers=owner_headers,
    )

    assert resp.status_code == 500
    assert resp.json()["detail"] == "staging_failed"

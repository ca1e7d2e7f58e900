import shutil
import subprocess
from pathlib import Path
from urllib.parse import urlparse

import jwt
import pytest
import structlog
from fastapi.testclient import TestClient

from tubely.api import deps
from tubely.core.config import get_settings
from tubely.core.errors import RemuxError
from tubely.main import create_app
from tubely.media.probe import Geometry

TEST_BUCKET = "tubely-test"
JWT_SECRET = "test-secret"


def pytest_configure(config):
    config.addinivalue_line(
        "markers",
        "no_default_env: disable the default Tubely environment bootstrap fixture for tests that manage their own .env",
    )


@pytest.fixture(autouse=True)
def configure_environment(request, monkeypatch, tmp_path):
    if request.node.get_closest_marker("no_default_env"):
        get_settings.cache_clear()
        yield
        get_settings.cache_clear()
        return

    monkeypatch.setenv("TUBELY_ENV", "test")
    monkeypatch.setenv("TUBELY_LOG_LEVEL", "debug")
    monkeypatch.setenv("TUBELY_DB_URL", f"sqlite+aiosqlite:///{tmp_path / 'tubely_test.db'}")
    monkeypatch.setenv("TUBELY_STORAGE_BACKEND", "local")
    monkeypatch.setenv("TUBELY_LOCAL_STORAGE_BASE_PATH", str(tmp_path / "objects"))
    monkeypatch.setenv("TUBELY_STAGING_DIR", str(tmp_path / "staging"))
    monkeypatch.setenv("TUBELY_S3_BUCKET", TEST_BUCKET)
    monkeypatch.setenv("TUBELY_JWT_SECRET", JWT_SECRET)
    monkeypatch.delenv("TUBELY_JWT_ISSUER", raising=False)
    monkeypatch.delenv("TUBELY_JWT_AUDIENCE", raising=False)

    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture(autouse=True)
def reset_logging():
    yield
    # Loggers configured against a captured stream must not outlive the test.
    structlog.reset_defaults()


class FakeRemuxer:
    """Stands in for ffmpeg: prefixes the source bytes with a marker."""

    marker = b"FASTSTART:"

    def __init__(self) -> None:
        self.fail = False
        self.calls: list[tuple[Path, Path]] = []

    def remux(self, source: Path, target: Path) -> Path:
        self.calls.append((source, target))
        if self.fail:
            raise RemuxError("ffmpeg faststart failed with exit code 1", stderr="moov atom not found")
        target.write_bytes(self.marker + source.read_bytes())
        return target


class FakeInspector:
    def __init__(self) -> None:
        self.geometry: Geometry | None = Geometry(width=1920, height=1080)
        self.error: Exception | None = None
        self.seen: list[Path] = []

    def inspect(self, path: Path) -> Geometry | None:
        self.seen.append(path)
        if self.error is not None:
            raise self.error
        return self.geometry


@pytest.fixture()
def fake_remuxer() -> FakeRemuxer:
    return FakeRemuxer()


@pytest.fixture()
def fake_inspector() -> FakeInspector:
    return FakeInspector()


@pytest.fixture()
def client(configure_environment, fake_remuxer, fake_inspector):
    app = create_app()
    app.dependency_overrides[deps.get_remuxer] = lambda: fake_remuxer
    app.dependency_overrides[deps.get_inspector] = lambda: fake_inspector
    with TestClient(app) as client:
        yield client


def build_token(user_id: str, *, scopes: list[str] | None = None) -> str:
    payload: dict[str, object] = {"sub": user_id}
    if scopes:
        payload["scopes"] = scopes
    return jwt.encode(payload, JWT_SECRET, algorithm="HS256")


@pytest.fixture()
def owner_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {build_token('user-owner')}"}


@pytest.fixture()
def other_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {build_token('user-other')}"}


@pytest.fixture()
def admin_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {build_token('user-admin', scopes=['admin'])}"}


@pytest.fixture()
def staging_dir(tmp_path) -> Path:
    return tmp_path / "staging"


@pytest.fixture()
def bucket_root(tmp_path) -> Path:
    return tmp_path / "objects" / TEST_BUCKET


def list_files(root: Path) -> list[Path]:
    if not root.exists():
        return []
    return sorted(p for p in root.rglob("*") if p.is_file())


def uri_to_path(uri: str) -> Path:
    parsed = urlparse(uri)
    if parsed.scheme != "file":
        raise ValueError("Unsupported URI in tests")
    return Path(parsed.path)


requires_ffmpeg = pytest.mark.skipif(
    shutil.which("ffmpeg") is None or shutil.which("ffprobe") is None,
    reason="ffmpeg/ffprobe not installed",
)


@pytest.fixture(scope="session")
def generated_video_file(tmp_path_factory) -> Path:
    """
    Generates a small, valid 16:9 MP4 video file for testing in a temporary directory.
    """
    if shutil.which("ffmpeg") is None:
        pytest.skip("ffmpeg not installed")
    video_path = tmp_path_factory.mktemp("data") / "test_video.mp4"

    command = [
        "ffmpeg",
        "-f", "lavfi",
        "-i", "color=c=black:s=192x108:r=30",
        "-t", "1",
        "-pix_fmt", "yuv420p",
        str(video_path),
    ]
    subprocess.run(command, check=True, capture_output=True)
    return video_path

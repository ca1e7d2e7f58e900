from __future__ import annotations

import os
from pathlib import Path

import jwt
import pytest
from fastapi.testclient import TestClient

from tubely.core.config import get_settings
from tubely.main import create_app

DEV_SECRET = "dev-secret"


pytestmark = pytest.mark.no_default_env


def _write_env(target_dir: Path, *, environment: str) -> Path:
    target_dir.mkdir(parents=True, exist_ok=True)
    env_text = f"""
TUBELY_ENV={environment}
TUBELY_LOG_LEVEL=debug
TUBELY_JWT_SECRET={DEV_SECRET}
TUBELY_STORAGE_BACKEND=local
TUBELY_LOCAL_STORAGE_BASE_PATH=objects
TUBELY_STAGING_DIR=staging
TUBELY_DB_URL=sqlite+aiosqlite:///./tubely.db
""".strip()
    env_path = target_dir / ".env"
    env_path.write_text(env_text)
    return env_path


@pytest.fixture(autouse=True)
def isolated_environment():
    saved = dict(os.environ)
    get_settings.cache_clear()
    yield
    os.environ.clear()
    os.environ.update(saved)
    get_settings.cache_clear()


def _prepare_app(tmp_path: Path, monkeypatch: pytest.MonkeyPatch, *, environment: str) -> TestClient:
    _write_env(tmp_path, environment=environment)
    for key in list(os.environ.keys()):
        if key.startswith("TUBELY_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)
    get_settings.cache_clear()
    app = create_app()
    client = TestClient(app)
    client.__enter__()
    return client


def test_env_boots_without_shell_exports(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    client = _prepare_app(tmp_path, monkeypatch, environment="development")
    try:
        response = client.get("/v1/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"
        assert (tmp_path / "tubely.db").exists()
    finally:
        client.__exit__(None, None, None)


def test_dev_token_endpoint_only_in_dev(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    client = _prepare_app(tmp_path, monkeypatch, environment="development")
    try:
        payload = {"user_id": "user-1", "scopes": ["admin"]}
        response = client.post("/v1/admin/dev-token", json=payload)
        assert response.status_code == 200
        token = response.json()["token"]
        decoded = jwt.decode(token, DEV_SECRET, algorithms=["HS256"])
        assert decoded["sub"] == payload["user_id"]
        assert decoded["scopes"] == ["admin"]
    finally:
        client.__exit__(None, None, None)

    prod_client = _prepare_app(tmp_path / "prod", monkeypatch, environment="production")
    try:
        response = prod_client.post("/v1/admin/dev-token", json={"user_id": "user-prod"})
        assert response.status_code == 403
    finally:
        prod_client.__exit__(None, None, None)


def test_production_refuses_default_secret(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    for key in list(os.environ.keys()):
        if key.startswith("TUBELY_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("TUBELY_ENV", "production")
    with pytest.raises(ValueError):
        get_settings()


def test_request_with_dev_token_succeeds(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    client = _prepare_app(tmp_path, monkeypatch, environment="development")
    try:
        token_resp = client.post("/v1/admin/dev-token", json={"user_id": "user-dev"})
        assert token_resp.status_code == 200
        headers = {"Authorization": f"Bearer {token_resp.json()['token']}"}
        create_resp = client.post("/v1/videos", json={"title": "First upload"}, headers=headers)
        assert create_resp.status_code == 201
        assert create_resp.json()["user_id"] == "user-dev"
    finally:
        client.__exit__(None, None, None)

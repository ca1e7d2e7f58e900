from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Annotated
from uuid import UUID

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tubely.core.auth import AuthContext, get_auth_context, require_scope
from tubely.core.config import Settings, get_settings
from tubely.core.storage import ObjectStore
from tubely.media.probe import FFprobeInspector, Inspector
from tubely.media.references import ReferenceMaterializer
from tubely.media.remux import FFmpegRemuxer, Remuxer
from tubely.services.upload_pipeline import UploadPipeline
from tubely.services.video_service import VideoService


async def get_session(request: Request) -> AsyncIterator[AsyncSession]:
    session_factory = request.app.state.session_factory
    if not isinstance(session_factory, async_sessionmaker):
        raise RuntimeError("session_factory_not_configured")
    async with session_factory() as session:
        yield session


def get_object_store(request: Request) -> ObjectStore:
    store: ObjectStore = request.app.state.object_store
    return store


def get_app_settings() -> Settings:
    return get_settings()


def get_remuxer(settings: Settings = Depends(get_app_settings)) -> Remuxer:
    return FFmpegRemuxer(settings.ffmpeg_path, timeout_s=settings.media_tool_timeout_s)


def get_inspector(settings: Settings = Depends(get_app_settings)) -> Inspector:
    return FFprobeInspector(settings.ffprobe_path, timeout_s=settings.media_tool_timeout_s)


def get_materializer(
    store: ObjectStore = Depends(get_object_store),
    settings: Settings = Depends(get_app_settings),
) -> ReferenceMaterializer:
    return ReferenceMaterializer(store, ttl_s=settings.presign_ttl_s)


async def get_video_service(session: AsyncSession = Depends(get_session)) -> AsyncIterator[VideoService]:
    yield VideoService(session)


def get_upload_pipeline(
    settings: Settings = Depends(get_app_settings),
    store: ObjectStore = Depends(get_object_store),
    remuxer: Remuxer = Depends(get_remuxer),
    inspector: Inspector = Depends(get_inspector),
    materializer: ReferenceMaterializer = Depends(get_materializer),
) -> UploadPipeline:
    return UploadPipeline(settings, store, remuxer, inspector, materializer)


def parse_video_id(video_id: str) -> str:
    try:
        return str(UUID(video_id))
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="invalid_video_id") from exc


VideoServiceDependency = Annotated[VideoService, Depends(get_video_service)]
AuthDependency = Annotated[AuthContext, Depends(get_auth_context)]
AdminDependency = Annotated[AuthContext, Depends(require_scope("admin"))]
SettingsDependency = Annotated[Settings, Depends(get_app_settings)]
MaterializerDependency = Annotated[ReferenceMaterializer, Depends(get_materializer)]
PipelineDependency = Annotated[UploadPipeline, Depends(get_upload_pipeline)]
VideoIdDependency = Annotated[str, Depends(parse_video_id)]


__all__ = [
    "get_session",
    "get_object_store",
    "get_app_settings",
    "get_remuxer",
    "get_inspector",
    "get_materializer",
    "get_video_service",
    "get_upload_pipeline",
    "parse_video_id",
    "VideoServiceDependency",
    "AuthDependency",
    "AdminDependency",
    "SettingsDependency",
    "MaterializerDependency",
    "PipelineDependency",
    "VideoIdDependency",
]

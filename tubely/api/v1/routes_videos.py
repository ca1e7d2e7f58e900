from __future__ import annotations

import asyncio

from fastapi import APIRouter, Request, status

from tubely.api import deps

from . import schemas


router = APIRouter(prefix="/videos", tags=["videos"])


@router.post("", response_model=schemas.VideoResponse, status_code=status.HTTP_201_CREATED)
async def create_video(
    payload: schemas.VideoCreateRequest,
    service: deps.VideoServiceDependency,
    context: deps.AuthDependency,
    materializer: deps.MaterializerDependency,
) -> schemas.VideoResponse:
    video = await service.create_video(user_id=context.user_id, title=payload.title, description=payload.description)
    snapshot = await asyncio.to_thread(service.snapshot, video, materializer)
    return schemas.VideoResponse(**snapshot)


@router.get("", response_model=schemas.VideoListResponse)
async def list_videos(
    service: deps.VideoServiceDependency,
    context: deps.AuthDependency,
    materializer: deps.MaterializerDependency,
) -> schemas.VideoListResponse:
    videos = await service.list_videos(context.user_id)
    snapshots = await asyncio.to_thread(service.snapshot_many, videos, materializer)
    return schemas.VideoListResponse(videos=[schemas.VideoResponse(**snapshot) for snapshot in snapshots])


@router.get("/{video_id}", response_model=schemas.VideoResponse)
async def get_video(
    video_id: deps.VideoIdDependency,
    service: deps.VideoServiceDependency,
    context: deps.AuthDependency,
    materializer: deps.MaterializerDependency,
) -> schemas.VideoResponse:
    video = await service.get_owned_video(video_id, context.user_id)
    snapshot = await asyncio.to_thread(service.snapshot, video, materializer)
    return schemas.VideoResponse(**snapshot)


_UPLOAD_ERRORS = {code: {"model": schemas.ErrorResponse} for code in (400, 401, 404, 500)}


@router.post("/{video_id}/upload", response_model=schemas.VideoResponse, responses=_UPLOAD_ERRORS)
async def upload_video(
    video_id: deps.VideoIdDependency,
    request: Request,
    context: deps.AuthDependency,
    service: deps.VideoServiceDependency,
    pipeline: deps.PipelineDependency,
) -> schemas.VideoResponse:
    """Ingest a multipart ``video`` file, publish it, and return the signed record."""
    payload = await pipeline.run(request=request, video_id=video_id, user_id=context.user_id, videos=service)
    return schemas.VideoResponse(**payload)


__all__ = ["router"]

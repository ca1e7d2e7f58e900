from __future__ import annotations

from typing import Any
from uuid import uuid4

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from tubely.core.errors import NotFoundError, NotOwnerError
from tubely.core.logging import get_logger
from tubely.db.models import Video
from tubely.media.references import ReferenceMaterializer, StoredReference


class VideoService:
    """Create, read and update video records owned by users."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.logger = get_logger(component="video_service")

    async def create_video(self, *, user_id: str, title: str, description: str | None) -> Video:
        video = Video(video_id=str(uuid4()), user_id=user_id, title=title, description=description)
        self.session.add(video)
        await self.session.commit()
        await self.session.refresh(video)
        self.logger.info("video_created", video_id=video.video_id, user_id=user_id)
        return video

    async def get_video(self, video_id: str) -> Video | None:
        return await self.session.get(Video, video_id)

    async def get_owned_video(self, video_id: str, user_id: str) -> Video:
        video = await self.get_video(video_id)
        if video is None:
            raise NotFoundError()
        if video.user_id != user_id:
            raise NotOwnerError()
        return video

    async def list_videos(self, user_id: str) -> list[Video]:
        stmt = select(Video).where(Video.user_id == user_id).order_by(Video.created_at, Video.video_id)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def set_reference(self, video: Video, reference: StoredReference) -> Video:
        """Persist ``reference`` on ``video``; both columns change in one commit."""
        video.video_bucket = reference.bucket
        video.video_key = reference.key
        try:
            await self.session.commit()
        except SQLAlchemyError:
            await self.session.rollback()
            raise
        await self.session.refresh(video)
        return video

    def snapshot(self, video: Video, materializer: ReferenceMaterializer) -> dict[str, Any]:
        """Return the caller-facing view of ``video`` with a freshly signed URL."""
        reference = StoredReference.from_record(video.video_bucket, video.video_key)
        video_url = materializer.materialize(reference) if reference else None
        return {
            "video_id": video.video_id,
            "user_id": video.user_id,
            "title": video.title,
            "description": video.description,
            "video_url": video_url,
            "created_at": video.created_at,
            "updated_at": video.updated_at,
        }


    def snapshot_many(self, videos: list[Video], materializer: ReferenceMaterializer) -> list[dict[str, Any]]:
        return [self.snapshot(video, materializer) for video in videos]

__all__ = ["VideoService"]

"""Video upload pipeline.

A run moves through ``validated -> staged -> remuxed -> classified ->
published -> recorded -> signed``. Any failure moves it to ``aborted``; the
stager's context guarantees staged artifacts are removed on every exit.
"""

from __future__ import annotations

import asyncio
import enum
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from sqlalchemy.exc import SQLAlchemyError
from starlette.requests import Request

from tubely.core.config import Settings
from tubely.core.errors import StorageError
from tubely.core.logging import get_logger
from tubely.core.storage import ObjectStore
from tubely.db.models import Video
from tubely.media.intake import read_video_form
from tubely.media.keys import build_object_key
from tubely.media.probe import Inspector, Orientation, detect_orientation
from tubely.media.references import ReferenceMaterializer, StoredReference
from tubely.media.remux import Remuxer
from tubely.media.staging import Stager
from tubely.services.video_service import VideoService


class PipelineStage(str, enum.Enum):
    pending = "pending"
    validated = "validated"
    staged = "staged"
    remuxed = "remuxed"
    classified = "classified"
    published = "published"
    recorded = "recorded"
    signed = "signed"
    aborted = "aborted"


@dataclass(slots=True)
class UploadSession:
    video_id: str
    user_id: str
    stage: PipelineStage = PipelineStage.pending
    media_type: Optional[str] = None
    original_path: Optional[Path] = None
    processed_path: Optional[Path] = None
    orientation: Optional[Orientation] = None
    object_key: Optional[str] = None
    history: list[PipelineStage] = field(default_factory=list)


class UploadPipeline:
    def __init__(
        self,
        settings: Settings,
        store: ObjectStore,
        remuxer: Remuxer,
        inspector: Inspector,
        materializer: ReferenceMaterializer | None = None,
    ):
        self.settings = settings
        self.store = store
        self.remuxer = remuxer
        self.inspector = inspector
        self.materializer = materializer or ReferenceMaterializer(store, ttl_s=settings.presign_ttl_s)

    async def run(self, *, request: Request, video_id: str, user_id: str, videos: VideoService) -> dict[str, Any]:
        """Ingest the video in ``request`` for ``video_id`` and return the signed view."""
        session = UploadSession(video_id=video_id, user_id=user_id)
        logger = get_logger(component="upload_pipeline", video_id=video_id, user_id=user_id)
        try:
            video = await videos.get_owned_video(video_id, user_id)
            await self._ingest(session, request, video, videos, logger)
            payload = await asyncio.to_thread(videos.snapshot, video, self.materializer)
            self._advance(session, PipelineStage.signed, logger)
            return payload
        except Exception:
            self._advance(session, PipelineStage.aborted, logger)
            raise

    async def _ingest(self, session: UploadSession, request: Request, video: Video, videos: VideoService, logger) -> None:
        upload = await read_video_form(
            request,
            max_bytes=self.settings.max_upload_bytes,
            memory_bytes=self.settings.form_memory_bytes,
            allowed_types=self.settings.allowed_video_types,
        )
        try:
            session.media_type = upload.media_type
            self._advance(session, PipelineStage.validated, logger)

            with Stager(self.settings.staging_dir) as stager:
                session.original_path = await asyncio.to_thread(stager.stage, upload.file.file)
                self._advance(session, PipelineStage.staged, logger)

                target = stager.reserve(".faststart.mp4")
                session.processed_path = await asyncio.to_thread(self.remuxer.remux, session.original_path, target)
                self._advance(session, PipelineStage.remuxed, logger)

                # Geometry is read from the original upload, not the remuxed copy.
                session.orientation = await asyncio.to_thread(
                    detect_orientation,
                    self.inspector,
                    session.original_path,
                    tolerance=self.settings.aspect_tolerance,
                )
                self._advance(session, PipelineStage.classified, logger)

                session.object_key = build_object_key(session.orientation)
                reference = StoredReference(bucket=self.settings.s3_bucket, key=session.object_key)
                await asyncio.to_thread(
                    self.store.put_file,
                    reference.bucket,
                    reference.key,
                    session.processed_path,
                    content_type=session.media_type,
                )
                self._advance(session, PipelineStage.published, logger)

            await self._record(videos, video, reference, logger)
            self._advance(session, PipelineStage.recorded, logger)
        finally:
            await upload.close()

    async def _record(self, videos: VideoService, video: Video, reference: StoredReference, logger) -> None:
        try:
            await videos.set_reference(video, reference)
        except SQLAlchemyError as exc:
            logger.error("reference_persist_failed", bucket=reference.bucket, key=reference.key, error=str(exc))
            try:
                await asyncio.to_thread(self.store.delete, reference.bucket, reference.key)
            except StorageError as cleanup_error:
                logger.error("orphaned_object", bucket=reference.bucket, key=reference.key, error=str(cleanup_error))
            raise StorageError("reference_persist_failed", "Failed to record stored reference") from exc

    @staticmethod
    def _advance(session: UploadSession, stage: PipelineStage, logger) -> None:
        session.stage = stage
        session.history.append(stage)
        if stage is PipelineStage.aborted:
            logger.warning("upload_aborted", completed=[s.value for s in session.history[:-1]])
        else:
            logger.info("upload_stage", stage=stage.value)


__all__ = ["PipelineStage", "UploadSession", "UploadPipeline"]

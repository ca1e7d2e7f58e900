from __future__ import annotations

import os
import shutil
import tempfile
from pathlib import Path
from typing import BinaryIO

from tubely.core.errors import StagingError
from tubely.core.logging import get_logger

COPY_CHUNK_BYTES = 1024 * 1024


class Stager:
    """Owns every staged artifact of a single pipeline run.

    Use as a context manager; all paths created through :meth:`stage` or
    :meth:`reserve` are removed on exit, whether the run succeeded or not.
    """

    def __init__(self, staging_dir: Path | None = None, *, prefix: str = "tubely-upload-"):
        self.staging_dir = staging_dir
        self.prefix = prefix
        self._paths: list[Path] = []
        self.logger = get_logger(component="stager")

    def __enter__(self) -> "Stager":
        if self.staging_dir is not None:
            try:
                self.staging_dir.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                raise StagingError(message=f"Failed to prepare staging directory: {exc}") from exc
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.cleanup()

    @property
    def paths(self) -> tuple[Path, ...]:
        return tuple(self._paths)

    def _new_path(self, suffix: str) -> Path:
        fd, name = tempfile.mkstemp(prefix=self.prefix, suffix=suffix, dir=self.staging_dir)
        os.close(fd)
        path = Path(name)
        self._paths.append(path)
        return path

    def stage(self, source: BinaryIO, *, suffix: str = ".mp4") -> Path:
        """Copy ``source`` to a uniquely named temporary file and rewind ``source``."""
        try:
            path = self._new_path(suffix)
            source.seek(0)
            with path.open("wb") as handle:
                shutil.copyfileobj(source, handle, COPY_CHUNK_BYTES)
            source.seek(0)
        except OSError as exc:
            raise StagingError(message=f"Failed to stage upload: {exc}") from exc
        self.logger.debug("artifact_staged", path=str(path), size_bytes=path.stat().st_size)
        return path

    def reserve(self, suffix: str) -> Path:
        """Return an empty staged path for a derived artifact."""
        try:
            return self._new_path(suffix)
        except OSError as exc:
            raise StagingError(message=f"Failed to reserve staging path: {exc}") from exc

    def cleanup(self) -> None:
        while self._paths:
            path = self._paths.pop()
            try:
                path.unlink(missing_ok=True)
            except OSError as cleanup_error:
                self.logger.warning("staged_artifact_cleanup_failed", path=str(path), error=str(cleanup_error))
            else:
                self.logger.debug("staged_artifact_removed", path=str(path))


__all__ = ["Stager"]

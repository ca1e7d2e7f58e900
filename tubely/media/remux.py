from __future__ import annotations

import subprocess
from pathlib import Path
from typing import Protocol

from tubely.core.errors import RemuxError
from tubely.core.logging import get_logger

STDERR_TAIL_CHARS = 2000

logger = get_logger(component="remuxer")


class Remuxer(Protocol):
    def remux(self, source: Path, target: Path) -> Path: ...


def build_faststart_command(ffmpeg: str, source: Path, target: Path) -> list[str]:
    """Stream-copy ``source`` into an MP4 at ``target`` with the moov atom up front."""
    return [
        ffmpeg,
        "-nostdin",
        "-y",
        "-i",
        str(source),
        "-c",
        "copy",
        "-movflags",
        "faststart",
        "-f",
        "mp4",
        str(target),
    ]


class FFmpegRemuxer:
    """Fast-start remuxing through the ffmpeg command-line tool."""

    def __init__(self, ffmpeg_path: str = "ffmpeg", *, timeout_s: float | None = 300.0):
        self.ffmpeg_path = ffmpeg_path
        self.timeout_s = timeout_s

    def remux(self, source: Path, target: Path) -> Path:
        command = build_faststart_command(self.ffmpeg_path, source, target)
        logger.info("remux_started", command=command)
        try:
            subprocess.run(
                command,
                check=True,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.PIPE,
                text=True,
                timeout=self.timeout_s,
            )
        except subprocess.CalledProcessError as exc:
            target.unlink(missing_ok=True)
            stderr = _tail(exc.stderr)
            logger.error("remux_failed", returncode=exc.returncode, stderr=stderr)
            raise RemuxError(f"ffmpeg faststart failed with exit code {exc.returncode}", stderr=stderr) from exc
        except subprocess.TimeoutExpired as exc:
            target.unlink(missing_ok=True)
            stderr = _tail(exc.stderr)
            logger.error("remux_timed_out", timeout_s=self.timeout_s, stderr=stderr)
            raise RemuxError(f"ffmpeg faststart exceeded {self.timeout_s}s", stderr=stderr) from exc
        except OSError as exc:
            target.unlink(missing_ok=True)
            logger.error("remux_unavailable", error=str(exc))
            raise RemuxError(f"ffmpeg could not be started: {exc}") from exc

        if not target.exists() or target.stat().st_size == 0:
            raise RemuxError("ffmpeg faststart produced no output")
        logger.info("remux_finished", target=str(target), size_bytes=target.stat().st_size)
        return target


def _tail(stderr: str | bytes | None) -> str:
    if not stderr:
        return ""
    if isinstance(stderr, bytes):
        stderr = stderr.decode("utf-8", errors="replace")
    return stderr.strip()[-STDERR_TAIL_CHARS:]


__all__ = ["Remuxer", "FFmpegRemuxer", "build_faststart_command"]

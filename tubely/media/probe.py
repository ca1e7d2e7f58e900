from __future__ import annotations

import enum
import json
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Protocol

from tubely.core.logging import get_logger

WIDE_RATIO = 16.0 / 9.0
TALL_RATIO = 9.0 / 16.0
# Absolute tolerance on width/height; admits encodes such as 608x1080.
DEFAULT_TOLERANCE = 0.02

logger = get_logger(component="aspect_classifier")


class Orientation(str, enum.Enum):
    wide = "wide"
    tall = "tall"
    other = "other"


@dataclass(frozen=True, slots=True)
class Geometry:
    width: int
    height: int

    @property
    def ratio(self) -> float:
        return self.width / self.height


class Inspector(Protocol):
    def inspect(self, path: Path) -> Optional[Geometry]: ...


def build_ffprobe_command(ffprobe: str, target: Path) -> list[str]:
    return [
        ffprobe,
        "-v",
        "error",
        "-print_format",
        "json",
        "-show_streams",
        str(target),
    ]


def parse_geometry(raw: Any) -> Optional[Geometry]:
    """Return the geometry of the first stream reporting positive width and height.

    Args:
        raw: Parsed ffprobe JSON output; anything but an object yields None.

    Returns:
        The stream geometry, or None when no stream carries usable dimensions.
    """
    if not isinstance(raw, dict):
        return None
    for stream in raw.get("streams") or []:
        if not isinstance(stream, dict):
            continue
        width = _positive_int(stream.get("width"))
        height = _positive_int(stream.get("height"))
        if width and height:
            return Geometry(width=width, height=height)
    return None


def _positive_int(value: Any) -> Optional[int]:
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value if value > 0 else None


def classify_aspect(width: int, height: int, *, tolerance: float = DEFAULT_TOLERANCE) -> Orientation:
    """Bucket a frame size into wide (16:9), tall (9:16) or other.

    Both bounds of the tolerance window are inclusive.
    """
    if width <= 0 or height <= 0:
        return Orientation.other
    ratio = width / height
    if abs(ratio - WIDE_RATIO) <= tolerance:
        return Orientation.wide
    if abs(ratio - TALL_RATIO) <= tolerance:
        return Orientation.tall
    return Orientation.other


class FFprobeInspector:
    """Reads stream geometry through the ffprobe command-line tool."""

    def __init__(self, ffprobe_path: str = "ffprobe", *, timeout_s: float | None = 300.0):
        self.ffprobe_path = ffprobe_path
        self.timeout_s = timeout_s

    def inspect(self, path: Path) -> Optional[Geometry]:
        command = build_ffprobe_command(self.ffprobe_path, path)
        proc = subprocess.run(
            command,
            check=True,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            timeout=self.timeout_s,
        )
        return parse_geometry(json.loads(proc.stdout))


def detect_orientation(inspector: Inspector, path: Path, *, tolerance: float = DEFAULT_TOLERANCE) -> Orientation:
    """Classify ``path``, falling back to ``other`` when inspection fails."""
    try:
        geometry = inspector.inspect(path)
    except subprocess.CalledProcessError as exc:
        logger.warning("ffprobe_failed", path=str(path), returncode=exc.returncode, stderr=(exc.stderr or "").strip())
        return Orientation.other
    except subprocess.TimeoutExpired:
        logger.warning("ffprobe_timed_out", path=str(path))
        return Orientation.other
    except (OSError, ValueError) as exc:
        logger.warning("ffprobe_unusable", path=str(path), error=str(exc))
        return Orientation.other

    if geometry is None:
        logger.warning("ffprobe_no_geometry", path=str(path))
        return Orientation.other

    orientation = classify_aspect(geometry.width, geometry.height, tolerance=tolerance)
    logger.info("orientation_detected", width=geometry.width, height=geometry.height, orientation=orientation.value)
    return orientation


__all__ = [
    "Orientation",
    "Geometry",
    "Inspector",
    "FFprobeInspector",
    "build_ffprobe_command",
    "parse_geometry",
    "classify_aspect",
    "detect_orientation",
]

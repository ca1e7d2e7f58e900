"""Media ingest building blocks used by the upload pipeline."""

from tubely.media.intake import ValidatedUpload, parse_media_type, read_video_form
from tubely.media.keys import build_object_key
from tubely.media.probe import (
    FFprobeInspector,
    Geometry,
    Inspector,
    Orientation,
    classify_aspect,
    detect_orientation,
    parse_geometry,
)
from tubely.media.references import ReferenceMaterializer, StoredReference
from tubely.media.remux import FFmpegRemuxer, Remuxer
from tubely.media.staging import Stager

__all__ = [
    "ValidatedUpload",
    "parse_media_type",
    "read_video_form",
    "build_object_key",
    "FFprobeInspector",
    "Geometry",
    "Inspector",
    "Orientation",
    "classify_aspect",
    "detect_orientation",
    "parse_geometry",
    "ReferenceMaterializer",
    "StoredReference",
    "FFmpegRemuxer",
    "Remuxer",
    "Stager",
]

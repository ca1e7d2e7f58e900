from __future__ import annotations

import subprocess

VERSION_TIMEOUT_S = 10


def tool_available(binary: str) -> bool:
    """True when ``binary -version`` runs and exits cleanly."""
    try:
        subprocess.run(
            [binary, "-version"],
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            check=True,
            timeout=VERSION_TIMEOUT_S,
        )
    except (OSError, subprocess.SubprocessError):
        return False
    return True


def check_media_tools(ffmpeg_path: str, ffprobe_path: str) -> dict[str, bool]:
    return {"ffmpeg": tool_available(ffmpeg_path), "ffprobe": tool_available(ffprobe_path)}


__all__ = ["tool_available", "check_media_tools"]

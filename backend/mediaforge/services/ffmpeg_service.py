from __future__ import annotations
"""Thin wrappers around the ffmpeg / ffprobe binaries.

Both run synchronously; async callers go through ``asyncio.to_thread``.
"""

import json
import logging
import subprocess
from dataclasses import dataclass

from mediaforge.config import get_settings

logger = logging.getLogger(__name__)


class FFmpegError(RuntimeError):
    """ffmpeg or ffprobe exited non-zero, timed out, or is missing."""


@dataclass(frozen=True)
class MediaProbe:
    duration: float
    width: int | None = None
    height: int | None = None
    has_audio: bool = False


def probe_media(path: str, *, ffprobe_bin: str | None = None, timeout: int = 15) -> MediaProbe:
    """Read container duration, first video stream size and audio presence."""
    cmd = [
        ffprobe_bin or get_settings().FFPROBE_BIN, "-v", "quiet",
        "-show_entries", "format=duration:stream=codec_type,width,height",
        "-of", "json",
        path,
    ]
    try:
        result = subprocess.run(cmd, capture_output=True, text=True, timeout=timeout)
    except FileNotFoundError as exc:
        raise FFmpegError(f"ffprobe not found: {cmd[0]}") from exc
    except subprocess.TimeoutExpired as exc:
        raise FFmpegError(f"ffprobe timed out on {path}") from exc

    if result.returncode != 0:
        raise FFmpegError(f"ffprobe failed on {path}: {result.stderr[-300:]}")

    try:
        data = json.loads(result.stdout or "{}")
        duration = float(data.get("format", {}).get("duration"))
    except (json.JSONDecodeError, TypeError, ValueError) as exc:
        raise FFmpegError(f"Could not read duration of {path}") from exc

    streams = data.get("streams", [])
    video = next((s for s in streams if s.get("codec_type") == "video"), {})
    return MediaProbe(
        duration=duration,
        width=video.get("width"),
        height=video.get("height"),
        has_audio=any(s.get("codec_type") == "audio" for s in streams),
    )


def run_ffmpeg(cmd: list[str], *, timeout: int | None = None) -> None:
    """Run an ffmpeg command line; raise FFmpegError with the stderr tail on failure."""
    timeout = timeout or get_settings().ASSEMBLY_TIMEOUT
    logger.info("Running FFmpeg: %s", " ".join(cmd))
    try:
        result = subprocess.run(cmd, capture_output=True, text=True, timeout=timeout)
    except FileNotFoundError as exc:
        raise FFmpegError(f"ffmpeg not found: {cmd[0]}") from exc
    except subprocess.TimeoutExpired as exc:
        raise FFmpegError(f"ffmpeg timed out after {timeout}s") from exc

    if result.returncode != 0:
        logger.error("FFmpeg failed: %s", result.stderr[-500:])
        raise FFmpegError(f"FFmpeg failed: {result.stderr[-300:]}")

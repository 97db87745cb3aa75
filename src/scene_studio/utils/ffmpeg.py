"""FFmpeg invocation and argument building for preview rendering."""

import asyncio
from dataclasses import dataclass
from pathlib import Path

from scene_studio.config import settings
from scene_studio.logging import get_logger

logger = get_logger(__name__)

AUDIO_SAMPLE_RATE = 44100


class FFmpegError(RuntimeError):
    """FFmpeg exited non-zero, timed out or could not be started."""

    def __init__(self, message: str, returncode: int | None = None, stderr: str = "") -> None:
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr


@dataclass
class SegmentSpec:
    """Everything needed to encode one scene segment."""

    output_path: Path
    duration: float
    width: int
    height: int
    fps: int
    media_path: Path | None = None
    media_type: str | None = None  # "image" or "video"
    trim_start: float | None = None
    trim_end: float | None = None
    audio_path: Path | None = None


class FFmpegRunner:
    """Runs FFmpeg as a subprocess without blocking the event loop."""

    def __init__(self, binary: str | None = None, timeout: float | None = None) -> None:
        self.binary = binary or settings.ffmpeg_path or "ffmpeg"
        self.timeout = timeout or settings.ffmpeg_timeout

    async def run(self, args: list[str]) -> None:
        """Run ``ffmpeg -y <args>``.

        Raises:
            FFmpegError: On a non-zero exit, timeout or missing binary
        """
        cmd = [self.binary, "-hide_banner", "-loglevel", "error", "-y", *args]
        logger.debug("ffmpeg_started", args=" ".join(args)[:500])

        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise FFmpegError(f"FFmpeg not found at '{self.binary}'") from e

        try:
            _, stderr = await asyncio.wait_for(proc.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            proc.kill()
            await proc.wait()
            raise FFmpegError(f"FFmpeg timed out after {self.timeout}s") from e

        if proc.returncode != 0:
            error_text = stderr.decode(errors="replace").strip()
            logger.error("ffmpeg_failed", returncode=proc.returncode, stderr=error_text[-1000:])
            raise FFmpegError(
                f"ffmpeg exited with code {proc.returncode}: {error_text[-300:]}",
                returncode=proc.returncode,
                stderr=error_text,
            )


def _fmt(value: float) -> str:
    return f"{value:g}"


def build_segment_args(spec: SegmentSpec) -> list[str]:
    """Arguments encoding one fixed-size, fixed-length segment.

    Images are cover-fitted and held; videos are letterboxed, optionally
    trimmed, and hold their last frame when shorter than the scene. Without
    media a black frame is used. Without narration a silent stereo track is
    added so every segment has the same stream layout.
    """
    w, h, duration = spec.width, spec.height, _fmt(spec.duration)
    args: list[str] = []

    if spec.media_path and spec.media_type == "image":
        args += ["-loop", "1", "-i", str(spec.media_path)]
        video_filter = (
            f"scale={w}:{h}:force_original_aspect_ratio=increase,crop={w}:{h},format=yuv420p"
        )
    elif spec.media_path:
        if spec.trim_start:
            args += ["-ss", _fmt(spec.trim_start)]
        if spec.trim_end and spec.trim_end > (spec.trim_start or 0):
            args += ["-t", _fmt(spec.trim_end - (spec.trim_start or 0))]
        args += ["-i", str(spec.media_path)]
        video_filter = (
            f"scale={w}:{h}:force_original_aspect_ratio=decrease,"
            f"pad={w}:{h}:(ow-iw)/2:(oh-ih)/2,"
            f"tpad=stop_mode=clone:stop_duration={duration},format=yuv420p"
        )
    else:
        args += ["-f", "lavfi", "-i", f"color=c=black:s={w}x{h}:d={duration}"]
        video_filter = "format=yuv420p"

    if spec.audio_path:
        args += ["-i", str(spec.audio_path)]
        audio_filter = "[1:a]apad[a0]"
    else:
        args += [
            "-f",
            "lavfi",
            "-i",
            f"anullsrc=channel_layout=stereo:sample_rate={AUDIO_SAMPLE_RATE}",
        ]
        audio_filter = "[1:a]anull[a0]"

    args += [
        "-filter_complex",
        f"[0:v]{video_filter}[v0];{audio_filter}",
        "-map",
        "[v0]",
        "-map",
        "[a0]",
        "-t",
        duration,
        "-r",
        str(spec.fps),
        "-c:v",
        "libx264",
        "-preset",
        settings.ffmpeg_preset,
        "-crf",
        str(settings.ffmpeg_crf),
        "-c:a",
        "aac",
        "-ar",
        str(AUDIO_SAMPLE_RATE),
        "-ac",
        "2",
        "-movflags",
        "+faststart",
        str(spec.output_path),
    ]
    return args


def write_concat_list(segments: list[Path], list_path: Path) -> Path:
    """Write an FFmpeg concat-demuxer list file."""
    lines = []
    for segment in segments:
        escaped = str(segment).replace("'", "'\\''")
        lines.append(f"file '{escaped}'")
    list_path.write_text("\n".join(lines) + "\n")
    return list_path


def build_concat_copy_args(list_path: Path, output_path: Path) -> list[str]:
    """Concatenate by stream copy."""
    return ["-f", "concat", "-safe", "0", "-i", str(list_path), "-c", "copy", str(output_path)]


def build_concat_reencode_args(list_path: Path, output_path: Path) -> list[str]:
    """Concatenate with a full re-encode."""
    return [
        "-f",
        "concat",
        "-safe",
        "0",
        "-i",
        str(list_path),
        "-c:v",
        "libx264",
        "-preset",
        "veryfast",
        "-crf",
        "23",
        "-c:a",
        "aac",
        "-movflags",
        "+faststart",
        str(output_path),
    ]

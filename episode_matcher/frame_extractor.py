"""Frame extraction from video files using ffmpeg."""

import logging
from pathlib import Path
from typing import Any, List

import ffmpeg

logger = logging.getLogger(__name__)

TAIL_SECONDS = 15
FRAMES_PER_SECOND = 1
FRAME_PATTERN = "frame_%04d.png"


class MediaToolError(RuntimeError):
    """Raised when ffmpeg/ffprobe is missing or fails."""


def _stderr_tail(error: ffmpeg.Error, limit: int = 500) -> str:
    stderr = error.stderr.decode('utf8', errors='ignore') if error.stderr else ''
    return stderr.strip()[-limit:]


def run_ffmpeg(stream_spec: Any, what: str) -> None:
    """
    Run an ffmpeg-python stream spec to completion.

    Raises:
        MediaToolError: If ffmpeg is not installed or exits non-zero.
    """
    try:
        stream_spec.run(capture_stdout=True, capture_stderr=True)
    except FileNotFoundError as e:
        raise MediaToolError("ffmpeg not found. Please install ffmpeg and ensure it's in your PATH.") from e
    except ffmpeg.Error as e:
        raise MediaToolError(f"ffmpeg {what} failed: {_stderr_tail(e)}") from e


def extract_tail_frames(
    media_file: Path,
    output_dir: Path,
    tail_seconds: int = TAIL_SECONDS,
    fps: int = FRAMES_PER_SECOND,
) -> List[Path]:
    """
    Sample frames from the end of a video into numbered PNG files.

    Args:
        media_file: Path to the video file
        output_dir: Existing directory to write frame_0001.png, frame_0002.png, ... into
        tail_seconds: How many seconds before the end of the file to start sampling
        fps: Frames sampled per second

    Returns:
        The written frame paths, sorted by filename (which is chronological)

    Raises:
        MediaToolError: If ffmpeg is not installed or fails
    """
    if not media_file.exists():
        raise FileNotFoundError(f"Media file not found: {media_file}")

    logger.debug(f"Extracting last {tail_seconds}s of {media_file.name} at {fps} fps")
    stream = (
        ffmpeg
        .input(str(media_file), sseof=-tail_seconds)
        .filter('fps', fps=fps)
        .output(str(output_dir / FRAME_PATTERN))
        .overwrite_output()
    )
    run_ffmpeg(stream, "frame extraction")

    frames = sorted(output_dir.glob("*.png"))
    logger.debug(f"Extracted {len(frames)} frames from {media_file.name}")
    return frames

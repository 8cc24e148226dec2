"""Subtitle track selection, extraction and display."""

import logging
import shlex
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional

import ffmpeg

from episode_matcher.frame_extractor import MediaToolError, run_ffmpeg
from episode_matcher.ocr_engine import OCRError, read_text
from episode_matcher.pgs import read_sup_file

logger = logging.getLogger(__name__)

# codec_name reported by ffprobe -> file extension used when demuxing with -c:s copy
TEXT_CODECS = {
    'subrip': 'srt',
    'ass': 'ass',
    'ssa': 'ass',
    'webvtt': 'vtt',
}
IMAGE_CODECS = {
    'hdmv_pgs_subtitle': 'sup',
}
ENGLISH_TAGS = {'eng', 'en'}

PRINTABLE_PUNCTUATION = set("!\"#$%&'()*+,-./:;<=>?@[\\]^_`{|}~")


class SubtitleError(MediaToolError):
    """Raised when a file has no subtitle track we can display."""


@dataclass
class SubtitleTrack:
    index: int
    codec: str
    language: Optional[str] = None

    @property
    def is_image(self) -> bool:
        return self.codec in IMAGE_CODECS

    @property
    def extension(self) -> str:
        return IMAGE_CODECS.get(self.codec) or TEXT_CODECS[self.codec]


def select_best_track(streams: List[Dict[str, Any]]) -> SubtitleTrack:
    """
    Pick the subtitle stream to show the operator.

    English tracks win over other languages, and within a language a text codec
    wins over an image codec. Ties go to the lowest stream index.

    Raises:
        SubtitleError: If no stream uses a supported codec
    """
    best: Optional[SubtitleTrack] = None
    best_rank = None

    for stream in streams:
        codec = stream.get('codec_name')
        if codec not in TEXT_CODECS and codec not in IMAGE_CODECS:
            continue
        language = (stream.get('tags') or {}).get('language')
        track = SubtitleTrack(index=int(stream['index']), codec=codec, language=language)
        rank = (language in ENGLISH_TAGS, not track.is_image)
        if best_rank is None or rank > best_rank:
            best, best_rank = track, rank

    if best is None:
        supported = ', '.join(sorted(TEXT_CODECS) + sorted(IMAGE_CODECS))
        raise SubtitleError(f"No supported subtitle track found (supported codecs: {supported})")
    if best.language not in ENGLISH_TAGS:
        logger.warning(f"No English subtitle track, using track {best.index} ({best.language or 'unknown language'})")
    return best


def probe_subtitle_streams(media_file: Path) -> List[Dict[str, Any]]:
    """List the subtitle streams of a file using ffprobe."""
    try:
        info = ffmpeg.probe(str(media_file), select_streams='s')
    except FileNotFoundError as e:
        raise MediaToolError("ffprobe not found. Please install ffmpeg and ensure it's in your PATH.") from e
    except ffmpeg.Error as e:
        stderr = e.stderr.decode('utf8', errors='ignore').strip() if e.stderr else ''
        raise MediaToolError(f"ffprobe failed for {media_file.name}: {stderr[-500:]}") from e
    return info.get('streams', [])


def find_best_subtitle_track(media_file: Path) -> SubtitleTrack:
    return select_best_track(probe_subtitle_streams(media_file))


def extract_subtitles(media_file: Path, track: SubtitleTrack, output_dir: Path) -> Path:
    """Demux one subtitle stream, unchanged, into output_dir."""
    output_path = output_dir / f"extracted.{track.extension}"
    stream = (
        ffmpeg
        .input(str(media_file))
        .output(str(output_path), map=f"0:{track.index}", **{'c:s': 'copy'})
        .overwrite_output()
    )
    run_ffmpeg(stream, "subtitle extraction")
    return output_path


def clean_subtitle_text(text: str) -> str:
    """Tidy OCR output of a subtitle image: '|' is read for 'I', junk characters are dropped."""
    text = text.replace('|', 'I')
    return ''.join(
        c for c in text
        if c.isalnum() or c.isspace() or c in PRINTABLE_PUNCTUATION
    )


def format_timestamp(seconds: float) -> str:
    total = int(seconds)
    return f"{total // 3600:02d}:{total % 3600 // 60:02d}:{total % 60:02d}"


def read_text_subtitle_lines(subtitle_path: Path) -> Iterator[str]:
    with open(subtitle_path, 'r', encoding='utf-8-sig', errors='replace') as f:
        for line in f:
            yield line.rstrip('\r\n')


def ocr_subtitle_lines(subtitle_path: Path) -> Iterator[str]:
    """OCR every display set of a PGS file, yielding timestamped lines."""
    for subtitle in read_sup_file(subtitle_path):
        try:
            text = read_text(subtitle.image)
        except OCRError as e:
            logger.warning(f"Skipping subtitle at {format_timestamp(subtitle.timestamp)}: {e}")
            continue
        cleaned = clean_subtitle_text(text).strip()
        if cleaned:
            yield f"[{format_timestamp(subtitle.timestamp)}] {cleaned}"
            yield ""


def subtitle_lines(subtitle_path: Path, track: SubtitleTrack) -> Iterator[str]:
    if track.is_image:
        return ocr_subtitle_lines(subtitle_path)
    return read_text_subtitle_lines(subtitle_path)


def page_lines(lines: Iterable[str], pager: str) -> None:
    """
    Show lines to the operator through an external pager and wait for it to exit.

    Raises:
        MediaToolError: If the pager cannot be started
    """
    try:
        process = subprocess.Popen(shlex.split(pager), stdin=subprocess.PIPE, text=True, encoding='utf-8')
    except (FileNotFoundError, PermissionError) as e:
        raise MediaToolError(f"Failed to start pager {pager!r}: {e}") from e

    try:
        for line in lines:
            process.stdin.write(line + "\n")
    except BrokenPipeError:
        # Operator quit the pager before the end
        pass
    finally:
        try:
            process.stdin.close()
        except BrokenPipeError:
            pass
        process.wait()

"""Production code candidate extraction from the closing frames of a video.

Production codes are shown briefly near the end of an episode. Their shape
changed over the years: early seasons use codes like ``3X22``, later ones
``6ABX08`` or ``1AYW01``. All of them are a digit, one to three letters, then
two or three digits.
"""

import logging
import re
import tempfile
from pathlib import Path
from typing import List, Optional

from episode_matcher.frame_extractor import extract_tail_frames
from episode_matcher.ocr_engine import OCRError, initialize_reader, read_text

logger = logging.getLogger(__name__)

PRODUCTION_CODE_PATTERN = re.compile(r"\d[A-Z]{1,3}\d{2,3}", re.IGNORECASE)

# The on-screen font makes the OCR engine read these characters wrongly
CONFUSABLE_CHARACTERS = str.maketrans({
    'O': '0',
    'I': '1',
    'S': '5',
    '?': 'X',
})

_WHITESPACE = re.compile(r"\s+")


def normalize_ocr_text(text: str) -> str:
    """Strip all whitespace and replace characters the OCR engine confuses."""
    return _WHITESPACE.sub('', text).translate(CONFUSABLE_CHARACTERS)


def find_code_candidates(text: str) -> List[str]:
    """Return every production-code-shaped substring of OCR text, in order."""
    return PRODUCTION_CODE_PATTERN.findall(normalize_ocr_text(text))


def extract_production_code_candidates(
    media_file: Path,
    model_dir: Optional[Path] = None,
    gpu: Optional[bool] = None,
) -> List[str]:
    """
    OCR the last seconds of a video and collect production code candidates.

    Frames are processed in filename order. A frame that cannot be decoded or
    recognized is skipped; a missing or failing ffmpeg aborts the whole call.
    The cache is never consulted here: callers decide which candidate is real.

    Args:
        media_file: Path to the video file
        model_dir: OCR model directory
        gpu: Use GPU acceleration for OCR (default: auto-detect)

    Returns:
        All candidates found, possibly empty

    Raises:
        MediaToolError: If ffmpeg is not installed or fails
        OCRError: If the OCR engine cannot be initialized
    """
    initialize_reader(model_dir=model_dir, gpu=gpu)

    candidates: List[str] = []
    with tempfile.TemporaryDirectory(prefix="episode-matcher-") as temp_dir:
        frames = extract_tail_frames(media_file, Path(temp_dir))

        for frame in frames:
            try:
                text = read_text(frame)
            except (OCRError, OSError) as e:
                logger.warning(f"Skipping frame {frame.name} of {media_file.name}: {e}")
                continue

            found = find_code_candidates(text)
            if found:
                logger.debug(f"{frame.name}: {text!r} -> {found}")
            candidates.extend(found)

    logger.info(f"Found {len(candidates)} production code candidate(s) in {media_file.name}")
    return candidates

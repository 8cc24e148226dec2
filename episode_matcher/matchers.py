"""Strategies that resolve one video file to one cached episode."""

import logging
import re
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional, Tuple

from rich.markup import escape

from episode_matcher.cache import EpisodeCache
from episode_matcher.config import DEFAULT_PAGER
from episode_matcher.models import EpisodeEntry
from episode_matcher.ocr_engine import initialize_reader
from episode_matcher.production_code import extract_production_code_candidates
from episode_matcher.prompts import LineReader, console, read_line
from episode_matcher.subtitles import extract_subtitles, find_best_subtitle_track, page_lines, subtitle_lines

logger = logging.getLogger(__name__)

SXXEXX_PATTERN = re.compile(r"^[Ss](\d{1,2})[Ee](\d{1,2})$")

PRODUCTION_CODE_MODE = "production-code"
SUBTITLES_MODE = "subtitles"
MATCH_MODES = (PRODUCTION_CODE_MODE, SUBTITLES_MODE)


def parse_sxxexx(text: str) -> Optional[Tuple[int, int]]:
    """Parse 'S01E02' (any case, one or two digits each) into (season, episode)."""
    match = SXXEXX_PATTERN.match(text.strip())
    if not match:
        return None
    return int(match.group(1)), int(match.group(2))


def lookup_manual_entry(cache: EpisodeCache, series_id: str, text: str) -> Optional[EpisodeEntry]:
    """Resolve operator input, first as a production code, then as SXXEXX."""
    text = text.strip()
    episode = cache.get_episode_by_code(series_id, text)
    if episode:
        return episode
    parsed = parse_sxxexx(text)
    if parsed is None:
        return None
    return cache.get_episode_by_season_episode(series_id, *parsed)


class Matcher(ABC):
    """Resolves a video file to an episode of a series."""

    @abstractmethod
    def match_episode(self, file_path: Path, series_id: str, cache: EpisodeCache) -> Optional[EpisodeEntry]:
        """
        Identify the episode contained in file_path.

        Returns:
            The cached episode, or None when nothing matched

        Raises:
            MediaToolError: If ffmpeg or the pager fails
            OCRError: If the OCR engine cannot be initialized
            PromptAborted: If the operator ends input at a prompt
        """


class ProductionCodeMatcher(Matcher):
    """Matches on production codes read from the closing frames.

    When no candidate is in the cache and the file is larger than prompt_size
    bytes, the operator is asked for a code or SXXEXX until one resolves.
    """

    def __init__(
        self,
        prompt_size: Optional[int] = None,
        model_dir: Optional[Path] = None,
        gpu: Optional[bool] = None,
        reader: Optional[LineReader] = None,
    ):
        self.prompt_size = prompt_size
        self.model_dir = model_dir
        self.gpu = gpu
        self.reader = reader

    def match_episode(self, file_path: Path, series_id: str, cache: EpisodeCache) -> Optional[EpisodeEntry]:
        candidates = extract_production_code_candidates(file_path, model_dir=self.model_dir, gpu=self.gpu)

        for code in candidates:
            episode = cache.get_episode_by_code(series_id, code)
            if episode:
                logger.info(f"{file_path.name}: production code {code} is {episode.sxxexx}")
                return episode

        if candidates:
            logger.info(f"{file_path.name}: no cached episode for candidates {', '.join(candidates)}")

        if self.prompt_size is None or file_path.stat().st_size <= self.prompt_size:
            return None
        return self._prompt_for_episode(file_path, series_id, cache)

    def _prompt_for_episode(self, file_path: Path, series_id: str, cache: EpisodeCache) -> EpisodeEntry:
        console.print(
            f"No production code recognized for [bold]{escape(file_path.name)}[/bold]. "
            "Please enter the production code or SXXEXX manually."
        )
        while True:
            text = read_line(">> ", self.reader).strip()
            if not text:
                continue
            episode = lookup_manual_entry(cache, series_id, text)
            if episode:
                return episode
            console.print(f"[yellow]No episode found for {escape(text)}, try again.[/yellow]")


class SubtitleMatcher(Matcher):
    """Shows the subtitles of a file in a pager and asks the operator for SXXEXX."""

    def __init__(
        self,
        pager: str = DEFAULT_PAGER,
        model_dir: Optional[Path] = None,
        gpu: Optional[bool] = None,
        reader: Optional[LineReader] = None,
    ):
        self.pager = pager
        self.model_dir = model_dir
        self.gpu = gpu
        self.reader = reader

    def match_episode(self, file_path: Path, series_id: str, cache: EpisodeCache) -> Optional[EpisodeEntry]:
        track = find_best_subtitle_track(file_path)
        console.print(f"Using subtitle track {track.index} ({track.codec})")

        with tempfile.TemporaryDirectory(prefix="episode-matcher-") as temp_dir:
            subtitle_path = extract_subtitles(file_path, track, Path(temp_dir))
            logger.debug(f"Extracted subtitles to {subtitle_path}")
            if track.is_image:
                initialize_reader(model_dir=self.model_dir, gpu=self.gpu)
            page_lines(subtitle_lines(subtitle_path, track), self.pager)

        console.print("Please enter SXXEXX (e.g. S01E01):")
        text = read_line(">> ", self.reader)
        parsed = parse_sxxexx(text)
        if parsed is None:
            logger.warning(f"Invalid SXXEXX {text.strip()!r} for {file_path.name}")
            return None

        season, number = parsed
        episode = cache.get_episode_by_season_episode(series_id, season, number)
        if episode is None:
            logger.warning(
                f"Failed to find episode matching 'S{season:02d}E{number:02d}' in cache for series {series_id}"
            )
        return episode


def create_matcher(
    mode: str,
    prompt_size: Optional[int] = None,
    pager: str = DEFAULT_PAGER,
    model_dir: Optional[Path] = None,
    gpu: Optional[bool] = None,
) -> Matcher:
    if mode == PRODUCTION_CODE_MODE:
        return ProductionCodeMatcher(prompt_size=prompt_size, model_dir=model_dir, gpu=gpu)
    if mode == SUBTITLES_MODE:
        return SubtitleMatcher(pager=pager, model_dir=model_dir, gpu=gpu)
    raise ValueError(f"Unknown match mode: {mode}")

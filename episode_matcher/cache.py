"""Persistent episode cache keyed by production code and by season/episode."""

import json
import logging
from pathlib import Path
from typing import Dict, Optional

from episode_matcher.config import get_cache_path
from episode_matcher.models import EpisodeEntry

logger = logging.getLogger(__name__)


class EpisodeCache:
    """Series names and episode lists for every show seen so far.

    Episodes are indexed twice per series: by lowercased production code (only
    for episodes that have one) and by season then episode number (always).
    """

    def __init__(self, path: Optional[Path] = None):
        self.path = path or get_cache_path()
        self.series: Dict[str, str] = {}
        self.episodes_by_production_code: Dict[str, Dict[str, EpisodeEntry]] = {}
        self.episodes_by_season_episode: Dict[str, Dict[int, Dict[int, EpisodeEntry]]] = {}

    @classmethod
    def load(cls, path: Optional[Path] = None) -> "EpisodeCache":
        """Load the cache from disk.

        A missing, unreadable or malformed file yields an empty cache.
        """
        cache = cls(path)
        if not cache.path.exists():
            return cache

        try:
            with open(cache.path, "r", encoding="utf-8") as f:
                data = json.load(f)
            cache._populate(data)
        except (OSError, ValueError, KeyError, TypeError, AttributeError, RecursionError) as e:
            logger.debug(f"Ignoring unreadable cache file {cache.path}: {e}")
            return cls(path)
        return cache

    def _populate(self, data: Dict) -> None:
        series = {str(k): str(v) for k, v in data.get("series", {}).items()}

        by_code: Dict[str, Dict[str, EpisodeEntry]] = {}
        for series_id, episodes in data.get("episodesByProductionCode", {}).items():
            by_code[str(series_id)] = {
                str(code).lower(): EpisodeEntry.from_dict(ep) for code, ep in episodes.items()
            }

        by_season: Dict[str, Dict[int, Dict[int, EpisodeEntry]]] = {}
        for series_id, seasons in data.get("episodesBySeasonEpisode", {}).items():
            by_season[str(series_id)] = {
                int(season): {int(number): EpisodeEntry.from_dict(ep) for number, ep in episodes.items()}
                for season, episodes in seasons.items()
            }

        self.series = series
        self.episodes_by_production_code = by_code
        self.episodes_by_season_episode = by_season

    def to_dict(self) -> Dict:
        return {
            "series": dict(self.series),
            "episodesByProductionCode": {
                series_id: {code: ep.to_dict() for code, ep in episodes.items()}
                for series_id, episodes in self.episodes_by_production_code.items()
            },
            "episodesBySeasonEpisode": {
                series_id: {
                    str(season): {str(number): ep.to_dict() for number, ep in episodes.items()}
                    for season, episodes in seasons.items()
                }
                for series_id, seasons in self.episodes_by_season_episode.items()
            },
        }

    def save(self) -> None:
        """Write the cache to disk, creating parent directories as needed.

        Raises:
            OSError: If the file cannot be written.
        """
        self.path.parent.mkdir(parents=True, exist_ok=True)
        # Write to a temporary file and replace, so an interrupted save keeps the old cache
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(self.to_dict(), f, ensure_ascii=False, indent=2)
        tmp_path.replace(self.path)

    def get_series_name(self, series_id: str) -> Optional[str]:
        return self.series.get(series_id)

    def set_series_name(self, series_id: str, name: str) -> None:
        self.series[series_id] = name

    def get_episode_by_code(self, series_id: str, production_code: str) -> Optional[EpisodeEntry]:
        """Look up an episode by production code, ignoring case."""
        if not production_code:
            return None
        episodes = self.episodes_by_production_code.get(series_id)
        if not episodes:
            return None
        return episodes.get(production_code.lower())

    def get_episode_by_season_episode(self, series_id: str, season: int, episode: int) -> Optional[EpisodeEntry]:
        seasons = self.episodes_by_season_episode.get(series_id)
        if not seasons:
            return None
        return seasons.get(season, {}).get(episode)

    def set_episode(self, series_id: str, entry: EpisodeEntry) -> None:
        """Insert or overwrite an episode in both indices."""
        if entry.production_code:
            self.episodes_by_production_code.setdefault(series_id, {})[entry.production_code.lower()] = entry
        seasons = self.episodes_by_season_episode.setdefault(series_id, {})
        seasons.setdefault(entry.season_number, {})[entry.episode_number] = entry

    def has_episodes(self, series_id: str) -> bool:
        return bool(self.episodes_by_production_code.get(series_id)) or bool(
            self.episodes_by_season_episode.get(series_id)
        )

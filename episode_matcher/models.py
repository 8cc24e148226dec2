"""Episode records shared by the cache, the TVDB client and the matchers."""

from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass
class EpisodeEntry:
    """One episode of a series as stored in the cache."""

    production_code: Optional[str]
    season_number: int
    episode_number: int
    name: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "productionCode": self.production_code,
            "seasonNumber": self.season_number,
            "episodeNumber": self.episode_number,
            "name": self.name,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EpisodeEntry":
        """Build an entry from its cache representation.

        Raises:
            KeyError, TypeError, ValueError: If the mapping is malformed.
        """
        code = data.get("productionCode")
        return cls(
            production_code=str(code) if code is not None else None,
            season_number=int(data["seasonNumber"]),
            episode_number=int(data["episodeNumber"]),
            name=str(data["name"]),
        )

    @property
    def sxxexx(self) -> str:
        return f"S{self.season_number:02d}E{self.episode_number:02d}"

"""Episode Matcher - Identify TV episode files by production code or subtitles and rename them."""

__version__ = "1.0.0"

from episode_matcher.cache import EpisodeCache
from episode_matcher.matchers import ProductionCodeMatcher, SubtitleMatcher, create_matcher
from episode_matcher.models import EpisodeEntry
from episode_matcher.production_code import extract_production_code_candidates
from episode_matcher.tvdb_client import TVDBClient

__all__ = [
    'EpisodeCache',
    'EpisodeEntry',
    'ProductionCodeMatcher',
    'SubtitleMatcher',
    'TVDBClient',
    'create_matcher',
    'extract_production_code_candidates',
]

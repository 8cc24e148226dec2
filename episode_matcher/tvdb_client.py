"""TheTVDB v4 API client for fetching series and episode information."""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

import requests

from episode_matcher.cache import EpisodeCache
from episode_matcher.models import EpisodeEntry

logger = logging.getLogger(__name__)


class RemoteError(Exception):
    """Raised when the catalog service fails or returns an unusable payload."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


@dataclass
class SearchResult:
    """A series returned by a TVDB search."""

    id: str
    names: Dict[str, str] = field(default_factory=dict)

    def display_name(self, language: str = "eng") -> str:
        """Name in the preferred language, else any translation, else 'Unknown'."""
        if language in self.names:
            return self.names[language]
        for name in self.names.values():
            return name
        return "Unknown"


class TVDBClient:
    BASE_URL = "https://api4.thetvdb.com/v4"

    def __init__(self, api_key: str, timeout: float = 30.0, session: Optional[requests.Session] = None):
        """Initialize the client. Login is deferred until the first authenticated call."""
        if not api_key:
            raise ValueError("TVDB API key must be provided")
        self.api_key = api_key
        self.timeout = timeout
        self.token: Optional[str] = None

        self.session = session or requests.Session()
        self.session.headers.update({
            'accept': 'application/json',
        })

    def login(self) -> None:
        """Exchange the API key for a bearer token."""
        try:
            response = self.session.post(
                f"{self.BASE_URL}/login",
                json={'apikey': self.api_key},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise RemoteError(f"TVDB login failed: {e}") from e

        if not response.ok:
            raise RemoteError(f"TVDB login failed: HTTP {response.status_code}", response.status_code)

        data = self._payload(response, "login")
        token = data.get('token') if isinstance(data, dict) else None
        if not token:
            raise RemoteError("TVDB login failed: response did not contain a token")
        self.token = token
        logger.debug("Logged in to TVDB")

    def _ensure_authenticated(self) -> None:
        if self.token is None:
            self.login()

    def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> requests.Response:
        """Issue an authenticated GET. Status handling is left to the caller."""
        self._ensure_authenticated()
        try:
            return self.session.get(
                f"{self.BASE_URL}{path}",
                params=params,
                headers={'Authorization': f"Bearer {self.token}"},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise RemoteError(f"TVDB request to {path} failed: {e}") from e

    @staticmethod
    def _payload(response: requests.Response, what: str) -> Any:
        """Return the 'data' member of a TVDB JSON response."""
        try:
            body = response.json()
        except ValueError as e:
            raise RemoteError(f"TVDB {what}: malformed JSON response") from e
        if not isinstance(body, dict) or 'data' not in body:
            raise RemoteError(f"TVDB {what}: response has no data field")
        return body['data']

    def search_series(self, query: str) -> List[SearchResult]:
        """
        Search for a series by name.
        Returns results in the order the service ranks them; an empty list means no match.
        """
        response = self._get("/search", params={'query': query, 'type': 'series'})
        if not response.ok:
            raise RemoteError(f"TVDB search failed: HTTP {response.status_code}", response.status_code)

        data = self._payload(response, "search")
        if data is None:
            return []
        if not isinstance(data, list):
            raise RemoteError("TVDB search: expected a list of results")

        results = []
        for item in data:
            if not isinstance(item, dict) or not item.get('tvdb_id'):
                continue
            names = item.get('translations') or {}
            if not isinstance(names, dict):
                names = {}
            if not names and item.get('name'):
                names = {'eng': item['name']}
            results.append(SearchResult(id=str(item['tvdb_id']), names={str(k): str(v) for k, v in names.items()}))
        return results

    def get_series_name(self, series_id: str) -> str:
        response = self._get(f"/series/{series_id}")
        if not response.ok:
            raise RemoteError(f"TVDB series lookup failed: HTTP {response.status_code}", response.status_code)

        data = self._payload(response, "series lookup")
        name = data.get('name') if isinstance(data, dict) else None
        if not name:
            raise RemoteError(f"TVDB series lookup: no name for series {series_id}")
        return str(name)

    def get_episodes_page(self, series_id: str, page: int) -> List[Dict[str, Any]]:
        """
        Fetch one page of the default-order episode list.
        A 404 is the service's way of saying the page is past the end and yields [].
        """
        response = self._get(f"/series/{series_id}/episodes/default", params={'page': page})
        if response.status_code == 404:
            return []
        if not response.ok:
            raise RemoteError(f"TVDB episodes lookup failed: HTTP {response.status_code}", response.status_code)

        data = self._payload(response, "episodes lookup")
        episodes = data.get('episodes') if isinstance(data, dict) else None
        if episodes is None:
            return []
        if not isinstance(episodes, list) or not all(isinstance(e, dict) for e in episodes):
            raise RemoteError("TVDB episodes lookup: expected a list of episode records")
        return episodes

    def get_all_episodes(self, series_id: str) -> List[Dict[str, Any]]:
        """Walk the paginated episode list until an empty or missing page."""
        all_episodes: List[Dict[str, Any]] = []
        page = 0
        while True:
            episodes = self.get_episodes_page(series_id, page)
            if not episodes:
                break
            all_episodes.extend(episodes)
            page += 1
        logger.info(f"Fetched {len(all_episodes)} episodes over {page} page(s) for series {series_id}")
        return all_episodes

    def get_episode_extended(self, episode_id: Any) -> EpisodeEntry:
        """Fetch the extended record of an episode, which carries its production code."""
        response = self._get(f"/episodes/{episode_id}/extended")
        if not response.ok:
            raise RemoteError(f"TVDB extended episode lookup failed: HTTP {response.status_code}", response.status_code)

        data = self._payload(response, "extended episode lookup")
        if not isinstance(data, dict):
            raise RemoteError(f"TVDB extended episode lookup: malformed record for episode {episode_id}")

        season = data.get('seasonNumber')
        number = data.get('number')
        if season is None or number is None:
            raise RemoteError(f"Episode {episode_id} has no season/episode number")

        code = data.get('productionCode')
        code = str(code).strip() if code is not None else ''
        return EpisodeEntry(
            production_code=code or None,
            season_number=int(season),
            episode_number=int(number),
            name=str(data.get('name') or ''),
        )

    def sync_episodes(
        self,
        series_id: str,
        cache: EpisodeCache,
        on_episode: Optional[Callable[[int, int], None]] = None,
    ) -> int:
        """
        Fetch every episode of a series into the cache.

        Page fetching is all-or-nothing: a failed page raises RemoteError. Each episode
        is then extended and written to the cache as soon as it arrives; an episode
        whose extended fetch fails is skipped with a warning.

        Args:
            series_id: TVDB series id
            cache: Cache to write episodes into
            on_episode: Optional callback(done, total) invoked after each episode

        Returns:
            Number of episodes written to the cache
        """
        summaries = self.get_all_episodes(series_id)
        total = len(summaries)
        written = 0

        for index, summary in enumerate(summaries, start=1):
            episode_id = summary.get('id')
            try:
                if episode_id is None:
                    raise RemoteError("episode summary has no id")
                entry = self.get_episode_extended(episode_id)
            except (RemoteError, ValueError, TypeError) as e:
                logger.warning(f"Skipping episode {episode_id} of series {series_id}: {e}")
            else:
                if not entry.name and summary.get('name'):
                    entry.name = str(summary['name'])
                cache.set_episode(series_id, entry)
                written += 1
            if on_episode:
                on_episode(index, total)

        logger.info(f"Cached {written} of {total} episodes for series {series_id}")
        return written

"""Series selection and episode cache preloading from TVDB."""

import logging
from typing import List, Optional

from rich.markup import escape
from rich.table import Table

from episode_matcher.cache import EpisodeCache
from episode_matcher.prompts import LineReader, PromptAborted, console, read_line
from episode_matcher.tvdb_client import SearchResult, TVDBClient

logger = logging.getLogger(__name__)


class ShowSelectionError(Exception):
    """Raised when no series can be chosen for the run."""


def choose_show(results: List[SearchResult], reader: Optional[LineReader] = None) -> SearchResult:
    """
    Let the operator pick one of several search results.

    Raises:
        ShowSelectionError: If the choice is not a listed number or input ends
    """
    table = Table(show_header=True, header_style="bold cyan", border_style="dim")
    table.add_column("#", justify="right")
    table.add_column("Name", style="yellow")
    table.add_column("TVDB ID", style="dim")
    for i, result in enumerate(results, start=1):
        table.add_row(str(i), escape(result.display_name()), result.id)

    console.print("Multiple shows found. Please select one:")
    console.print(table)

    try:
        answer = read_line(f"Enter number (1-{len(results)}): ", reader).strip()
    except PromptAborted as e:
        raise ShowSelectionError("No show selected") from e

    try:
        choice = int(answer)
    except ValueError:
        raise ShowSelectionError(f"Invalid selection: {answer!r}") from None
    if choice < 1 or choice > len(results):
        raise ShowSelectionError(f"Invalid selection: {choice}")
    return results[choice - 1]


def search_and_select_show(client: TVDBClient, query: str, reader: Optional[LineReader] = None) -> str:
    """
    Search TVDB for a show name and return the chosen series id.

    A single result is used directly; several are offered to the operator.

    Raises:
        ShowSelectionError: If nothing matches or the operator makes no valid choice
        RemoteError: If the search fails
    """
    results = client.search_series(query)
    if not results:
        raise ShowSelectionError(f"No shows found matching '{query}'")
    if len(results) == 1:
        return results[0].id
    return choose_show(results, reader).id


def get_show_name(client: TVDBClient, series_id: str, cache: EpisodeCache) -> str:
    """Series name from the cache, fetched and cached on a miss."""
    name = cache.get_series_name(series_id)
    if name:
        return name
    name = client.get_series_name(series_id)
    cache.set_series_name(series_id, name)
    return name


def preload_cache(client: TVDBClient, series_id: str, cache: EpisodeCache, refresh: bool = False) -> None:
    """
    Make sure the cache holds the series name and its episodes.

    Episodes are only synced when the cache has none for the series, or when
    refresh is requested.

    Raises:
        RemoteError: If the series lookup or the episode list fails
    """
    get_show_name(client, series_id, cache)

    if cache.has_episodes(series_id) and not refresh:
        console.print(f"Using cached episode data for series {series_id}")
        return

    console.print(f"Preloading episode cache for series {series_id}...")
    with console.status("[bold green]Fetching episodes from TVDB...") as status:
        def on_episode(done: int, total: int) -> None:
            status.update(f"[bold green]Fetching production codes ({done}/{total})...")

        written = client.sync_episodes(series_id, cache, on_episode=on_episode)
    console.print(f"[green]✓[/green] Cached {written} episodes.")

#!/usr/bin/env python3
"""Command-line interface for episode-matcher."""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from rich.console import Console
from rich.markup import escape

from episode_matcher.cache import EpisodeCache
from episode_matcher.config import ConfigError, load_settings
from episode_matcher.episode_fetcher import ShowSelectionError, get_show_name, preload_cache, search_and_select_show
from episode_matcher.filename import find_unique_filename, generate_filename
from episode_matcher.matchers import MATCH_MODES, PRODUCTION_CODE_MODE, Matcher, create_matcher
from episode_matcher.prompts import console
from episode_matcher.rename_executor import FAILED, NO_MATCH, FileResult, display_summary, rename_file
from episode_matcher.tvdb_client import RemoteError, TVDBClient

logger = logging.getLogger(__name__)

err_console = Console(stderr=True)

VIDEO_EXTENSION = ".mkv"


def configure_logging(verbosity: int) -> None:
    """Send diagnostics to stderr; -v shows progress, -vv everything."""
    if verbosity >= 2:
        level = logging.DEBUG
    elif verbosity == 1:
        level = logging.INFO
    else:
        level = logging.WARNING

    logging.basicConfig(level=level, format="%(levelname)s: %(name)s: %(message)s", stream=sys.stderr)
    # Third-party libraries are only interesting when something goes wrong
    for logger_name in ['easyocr', 'urllib3', 'PIL']:
        logging.getLogger(logger_name).setLevel(logging.WARNING)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="episode-matcher",
        description="Extract production codes from video files and rename them using TVDB data",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Identify every MKV in a directory by its on-screen production code:
  episode-matcher --show "The X-Files" ~/videos/season3/

  # Use a known TVDB id and ask for the code when OCR fails on files over 1 GB:
  episode-matcher --show-id 77398 --prompt-size 1000000000 ~/videos/

  # Read the subtitles instead and type SXXEXX:
  episode-matcher --show-id 77398 --match-mode subtitles episode.mkv

  # Preview renames without executing:
  episode-matcher --show-id 77398 --dry-run -r ~/videos/
        """
    )

    parser.add_argument("inputs", nargs="+", type=Path, help="Input files or directories to process")

    show = parser.add_mutually_exclusive_group(required=True)
    show.add_argument("--show", type=str, help="Show name to search in TVDB")
    show.add_argument("--show-id", type=str, help="Direct TVDB show ID")

    parser.add_argument("--no-confirm", action="store_true", help="Skip confirmation prompts")
    parser.add_argument("-r", "--recursive", action="store_true", help="Recursively scan directories for MKV files")
    parser.add_argument("--prompt-size", type=int, default=None,
                        help="File size in bytes above which the production code is asked for when OCR finds none")
    parser.add_argument("--match-mode", choices=MATCH_MODES, default=PRODUCTION_CODE_MODE, help="Matching mode")
    parser.add_argument("--refresh", action="store_true", help="Re-sync episodes from TVDB even if they are cached")
    parser.add_argument("--dry-run", action="store_true", help="Preview renames without executing")
    parser.add_argument("--tvdb-key", type=str, default=None, help="TVDB API key (default: TVDB_API_KEY or config file)")
    parser.add_argument("--ocr-device", choices=["auto", "gpu", "cpu"], default=None,
                        help="Force OCR device usage (default: auto)")
    parser.add_argument("-v", "--verbose", action="count", default=0, help="Show progress (-v) or debug (-vv) logs")
    return parser


def collect_mkv_files(directory: Path, recursive: bool) -> List[Path]:
    pattern = f"**/*{VIDEO_EXTENSION}" if recursive else f"*{VIDEO_EXTENSION}"
    return sorted(p for p in directory.glob(pattern) if p.is_file())


def process_file(
    file_path: Path,
    matcher: Matcher,
    series_id: str,
    show_name: str,
    cache: EpisodeCache,
    no_confirm: bool = False,
    dry_run: bool = False,
) -> FileResult:
    """Identify and rename one file. Errors are reported in the result, never raised."""
    console.print(f"Processing: [bold]{escape(str(file_path))}[/bold]")

    if file_path.suffix.lower() != VIDEO_EXTENSION:
        logger.error(f"Skipping non-MKV file: {file_path}")
        return FileResult(file_path, FAILED, message="not an MKV file")

    try:
        episode = matcher.match_episode(file_path, series_id, cache)
        if episode is None:
            logger.warning(f"No matching episode found for {file_path}")
            return FileResult(file_path, NO_MATCH)

        console.print(f"Found episode: {episode.sxxexx} - {escape(episode.name)}")
        new_name = generate_filename(show_name, episode.season_number, episode.episode_number, episode.name)
        new_path = find_unique_filename(file_path, file_path.parent, new_name)
        status = rename_file(file_path, new_path, skip_confirm=no_confirm, dry_run=dry_run)
        return FileResult(file_path, status, episode=episode, new_name=new_path.name)
    except Exception as e:
        logger.error(f"Error processing {file_path}: {e}")
        return FileResult(file_path, FAILED, message=str(e))


def process_input_path(
    input_path: Path,
    matcher: Matcher,
    series_id: str,
    show_name: str,
    cache: EpisodeCache,
    recursive: bool = False,
    no_confirm: bool = False,
    dry_run: bool = False,
) -> List[FileResult]:
    if input_path.is_file():
        files = [input_path]
    elif input_path.is_dir():
        files = collect_mkv_files(input_path, recursive)
        console.print(f"Found {len(files)} MKV file(s) to process in {escape(str(input_path))}")
    else:
        logger.error(f"Input path does not exist: {input_path}")
        return [FileResult(input_path, FAILED, message="path does not exist")]

    results = []
    for file_path in files:
        results.append(process_file(file_path, matcher, series_id, show_name, cache, no_confirm, dry_run))
        console.print()
    return results


def save_cache(cache: EpisodeCache) -> None:
    try:
        cache.save()
    except OSError as e:
        logger.warning(f"Failed to save cache to {cache.path}: {e}")


def run(args: argparse.Namespace) -> int:
    try:
        settings = load_settings(args.tvdb_key, args.ocr_device)
    except ConfigError as e:
        err_console.print(f"[red]Error:[/red] {escape(str(e))}")
        return 1

    cache = EpisodeCache.load(settings.cache_path)
    client = TVDBClient(settings.tvdb_api_key, timeout=settings.request_timeout)

    try:
        try:
            series_id = args.show_id or search_and_select_show(client, args.show)
            preload_cache(client, series_id, cache, refresh=args.refresh)
            show_name = get_show_name(client, series_id, cache)
        except (RemoteError, ShowSelectionError) as e:
            err_console.print(f"[red]Error:[/red] {escape(str(e))}")
            return 1

        matcher = create_matcher(
            args.match_mode,
            prompt_size=args.prompt_size,
            pager=settings.pager,
            model_dir=settings.model_dir,
            gpu=settings.ocr_gpu,
        )

        results: List[FileResult] = []
        for input_path in args.inputs:
            results.extend(process_input_path(
                input_path.expanduser(),
                matcher,
                series_id,
                show_name,
                cache,
                recursive=args.recursive,
                no_confirm=args.no_confirm,
                dry_run=args.dry_run,
            ))

        display_summary(results, show_name)
    finally:
        save_cache(cache)

    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose)

    try:
        return run(args)
    except KeyboardInterrupt:
        err_console.print("[yellow]Interrupted[/yellow]")
        return 130


if __name__ == "__main__":
    sys.exit(main())

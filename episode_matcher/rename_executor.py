"""Rename confirmation, execution and the end-of-run summary."""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from rich.markup import escape
from rich.table import Table

from episode_matcher.models import EpisodeEntry
from episode_matcher.prompts import LineReader, confirm, console

logger = logging.getLogger(__name__)

UNCHANGED = "unchanged"
RENAMED = "renamed"
SKIPPED = "skipped"
PLANNED = "dry run"
NO_MATCH = "no match"
FAILED = "error"


@dataclass
class FileResult:
    """Outcome of processing one input file."""

    path: Path
    status: str
    episode: Optional[EpisodeEntry] = None
    new_name: Optional[str] = None
    message: str = ""


def rename_file(
    old_path: Path,
    new_path: Path,
    skip_confirm: bool = False,
    dry_run: bool = False,
    reader: Optional[LineReader] = None,
) -> str:
    """
    Move old_path to new_path after an optional yes/no confirmation.

    Returns:
        One of UNCHANGED, PLANNED, SKIPPED or RENAMED

    Raises:
        OSError: If the move fails
    """
    if old_path == new_path:
        console.print("File is already named correctly.")
        return UNCHANGED

    if dry_run:
        console.print(f"[dim]Would rename[/dim] {escape(old_path.name)} -> [green]{escape(new_path.name)}[/green]")
        return PLANNED

    if not skip_confirm and not confirm(f'Rename "{old_path.name}" -> "{new_path.name}"?', reader):
        console.print("Skipped.")
        return SKIPPED

    old_path.rename(new_path)
    logger.info(f"Renamed {old_path} -> {new_path}")
    console.print("[green]✓[/green] Renamed successfully.")
    return RENAMED


def display_summary(results: List[FileResult], show_name: str) -> None:
    """Print a table of every processed file and what happened to it."""
    if not results:
        return

    renamed = sum(1 for r in results if r.status in (RENAMED, UNCHANGED, PLANNED))
    table = Table(
        title=f"[bold cyan]{escape(show_name)}[/bold cyan]: {renamed} of {len(results)} files named",
        show_header=True,
        header_style="bold cyan",
        border_style="dim",
    )
    table.add_column("Original Filename", style="yellow", overflow="fold")
    table.add_column("Episode", style="dim", overflow="fold")
    table.add_column("New Filename", style="green", overflow="fold")
    table.add_column("Status", overflow="fold")

    for result in results:
        episode = f"{result.episode.sxxexx} - {result.episode.name}" if result.episode else ""
        status = result.status
        if result.status == FAILED:
            status = f"[red]{FAILED}[/red]: {escape(result.message)}"
        elif result.status == NO_MATCH:
            status = f"[red]{NO_MATCH}[/red]"
        table.add_row(escape(result.path.name), escape(episode), escape(result.new_name or ""), status)

    console.print()
    console.print(table)

"""Filename generation utilities."""

from pathlib import Path

# Path separators and Windows reserved characters
UNSAFE_CHARACTERS = ['/', '\\', ':', '*', '?', '"', '<', '>', '|']


def sanitize_filename(name: str) -> str:
    """Replace characters unsafe on common filesystems with '-' and trim surrounding whitespace."""
    for ch in UNSAFE_CHARACTERS:
        name = name.replace(ch, '-')
    return name.strip()


def generate_filename(show_name: str, season: int, episode: int, episode_title: str, ext: str = ".mkv") -> str:
    """
    Build the target filename for an episode.

    Example:
        generate_filename("Show: Name", 2, 15, "Ep/isode?") -> "Show- Name - S02E15 - Ep-isode-.mkv"
    """
    return f"{sanitize_filename(show_name)} - S{season:02d}E{episode:02d} - {sanitize_filename(episode_title)}{ext}"


def find_unique_filename(original_path: Path, directory: Path, candidate_name: str) -> Path:
    """
    Return a path in directory for candidate_name that does not clobber another file.

    The candidate is returned unchanged if it is free or is the file being renamed.
    Otherwise " [copy N]" is inserted before the extension, counting up from 1.
    """
    path = directory / candidate_name
    stem = Path(candidate_name).stem
    suffix = Path(candidate_name).suffix

    counter = 1
    while path.exists() and path != original_path:
        path = directory / f"{stem} [copy {counter}]{suffix}"
        counter += 1
    return path

from pathlib import Path

from episode_matcher.models import EpisodeEntry
from episode_matcher.prompts import console
from episode_matcher.rename_executor import (
    FAILED,
    NO_MATCH,
    PLANNED,
    RENAMED,
    SKIPPED,
    UNCHANGED,
    FileResult,
    display_summary,
    rename_file,
)


def answers(*lines):
    remaining = list(lines)

    def reader(prompt):
        if not remaining:
            raise EOFError
        return remaining.pop(0)

    return reader


def test_rename_same_path(tmp_path):
    path = tmp_path / "a.mkv"
    path.touch()
    assert rename_file(path, path, reader=answers()) == UNCHANGED
    assert path.exists()


def test_rename_confirmed(tmp_path):
    old = tmp_path / "a.mkv"
    new = tmp_path / "b.mkv"
    old.write_text("video")
    assert rename_file(old, new, reader=answers("y")) == RENAMED
    assert not old.exists()
    assert new.read_text() == "video"


def test_rename_confirm_yes_word(tmp_path):
    old = tmp_path / "a.mkv"
    old.touch()
    assert rename_file(old, tmp_path / "b.mkv", reader=answers(" YES ")) == RENAMED


def test_rename_declined(tmp_path):
    old = tmp_path / "a.mkv"
    old.touch()
    assert rename_file(old, tmp_path / "b.mkv", reader=answers("n")) == SKIPPED
    assert old.exists()
    assert rename_file(old, tmp_path / "b.mkv", reader=answers("")) == SKIPPED
    assert rename_file(old, tmp_path / "b.mkv", reader=answers()) == SKIPPED
    assert not (tmp_path / "b.mkv").exists()


def test_rename_without_confirmation(tmp_path):
    old = tmp_path / "a.mkv"
    old.touch()
    assert rename_file(old, tmp_path / "b.mkv", skip_confirm=True, reader=answers()) == RENAMED
    assert (tmp_path / "b.mkv").exists()


def test_dry_run_touches_nothing(tmp_path):
    old = tmp_path / "a.mkv"
    old.touch()
    assert rename_file(old, tmp_path / "b.mkv", dry_run=True, reader=answers("y")) == PLANNED
    assert old.exists()
    assert not (tmp_path / "b.mkv").exists()


def test_display_summary(capsys, monkeypatch):
    monkeypatch.setattr(console, "width", 200)
    episode = EpisodeEntry("1X01", 1, 1, "Pilot")
    display_summary([
        FileResult(Path("a.mkv"), RENAMED, episode=episode, new_name="Show - S01E01 - Pilot.mkv"),
        FileResult(Path("b.mkv"), NO_MATCH),
        FileResult(Path("c.mkv"), FAILED, message="ffmpeg not found"),
    ], "Show")
    output = capsys.readouterr().out
    assert "a.mkv" in output
    assert "no match" in output
    assert "ffmpeg not found" in output


def test_display_summary_empty(capsys):
    display_summary([], "Show")
    assert capsys.readouterr().out == ""

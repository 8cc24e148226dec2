import json

import pytest

import episode_matcher.cli as cli
from episode_matcher.frame_extractor import MediaToolError
from episode_matcher.matchers import Matcher
from episode_matcher.models import EpisodeEntry


class FakeClient:
    """Stands in for the TVDB client with a fixed two-episode series."""

    instances = []

    def __init__(self, api_key, timeout=30.0):
        self.api_key = api_key
        self.synced = 0
        FakeClient.instances.append(self)

    def search_series(self, query):
        return []

    def get_series_name(self, series_id):
        return "The Show"

    def sync_episodes(self, series_id, cache, on_episode=None):
        self.synced += 1
        cache.set_episode(series_id, EpisodeEntry("1X01", 1, 1, "Pilot"))
        cache.set_episode(series_id, EpisodeEntry("1X02", 1, 2, "Second: Part 1"))
        return 2


class FakeMatcher(Matcher):
    """Matches files named after a production code; 'broken' files raise."""

    def match_episode(self, file_path, series_id, cache):
        if file_path.stem == "broken":
            raise MediaToolError("ffmpeg failed")
        return cache.get_episode_by_code(series_id, file_path.stem)


@pytest.fixture
def env(tmp_path, monkeypatch):
    home = tmp_path / "home"
    monkeypatch.setenv("EPISODE_MATCHER_HOME", str(home))
    monkeypatch.setenv("TVDB_API_KEY", "key")
    monkeypatch.delenv("PAGER", raising=False)
    monkeypatch.setattr(cli, "TVDBClient", FakeClient)
    monkeypatch.setattr(cli, "create_matcher", lambda mode, **kwargs: FakeMatcher())
    FakeClient.instances = []

    videos = tmp_path / "videos"
    videos.mkdir()
    return home, videos


def test_renames_matched_files(env):
    home, videos = env
    (videos / "1x01.mkv").write_text("one")
    (videos / "1X02.mkv").write_text("two")
    (videos / "unknown.mkv").write_text("?")
    (videos / "notes.txt").write_text("ignored")

    assert cli.main(["--show-id", "42", "--no-confirm", str(videos)]) == 0

    assert (videos / "The Show - S01E01 - Pilot.mkv").read_text() == "one"
    assert (videos / "The Show - S01E02 - Second- Part 1.mkv").read_text() == "two"
    assert (videos / "unknown.mkv").exists()
    assert (videos / "notes.txt").exists()

    data = json.loads((home / "cache.json").read_text(encoding="utf-8"))
    assert data["series"] == {"42": "The Show"}
    assert "1x01" in data["episodesByProductionCode"]["42"]


def test_cached_episodes_are_not_refetched(env):
    home, videos = env
    assert cli.main(["--show-id", "42", "--no-confirm", str(videos)]) == 0
    assert cli.main(["--show-id", "42", "--no-confirm", str(videos)]) == 0
    assert [c.synced for c in FakeClient.instances] == [1, 0]

    assert cli.main(["--show-id", "42", "--refresh", str(videos)]) == 0
    assert FakeClient.instances[-1].synced == 1


def test_name_collision_gets_copy_suffix(env):
    home, videos = env
    (videos / "1x01.mkv").write_text("new")
    (videos / "The Show - S01E01 - Pilot.mkv").write_text("existing")

    assert cli.main(["--show-id", "42", "--no-confirm", str(videos / "1x01.mkv")]) == 0
    assert (videos / "The Show - S01E01 - Pilot.mkv").read_text() == "existing"
    assert (videos / "The Show - S01E01 - Pilot [copy 1].mkv").read_text() == "new"


def test_errors_do_not_stop_the_run(env):
    home, videos = env
    (videos / "broken.mkv").write_text("x")
    (videos / "1x01.mkv").write_text("one")
    (videos / "clip.avi").write_text("avi")

    args = ["--show-id", "42", "--no-confirm", str(videos / "broken.mkv"), str(videos / "clip.avi"),
            str(videos / "missing.mkv"), str(videos / "1x01.mkv")]
    assert cli.main(args) == 0

    assert (videos / "broken.mkv").exists()
    assert (videos / "clip.avi").exists()
    assert (videos / "The Show - S01E01 - Pilot.mkv").exists()


def test_dry_run(env):
    home, videos = env
    (videos / "1x01.mkv").write_text("one")

    assert cli.main(["--show-id", "42", "--dry-run", str(videos)]) == 0
    assert (videos / "1x01.mkv").exists()
    assert not (videos / "The Show - S01E01 - Pilot.mkv").exists()


def test_recursive(env):
    home, videos = env
    nested = videos / "season1"
    nested.mkdir()
    (nested / "1x02.mkv").write_text("two")

    assert cli.main(["--show-id", "42", "--no-confirm", str(videos)]) == 0
    assert (nested / "1x02.mkv").exists()

    assert cli.main(["--show-id", "42", "--no-confirm", "-r", str(videos)]) == 0
    assert (nested / "The Show - S01E02 - Second- Part 1.mkv").exists()


def test_collect_mkv_files_sorted(tmp_path):
    for name in ("b.mkv", "a.mkv", "c.MKV.txt"):
        (tmp_path / name).touch()
    assert [p.name for p in cli.collect_mkv_files(tmp_path, recursive=False)] == ["a.mkv", "b.mkv"]


def test_missing_api_key(env, monkeypatch):
    home, videos = env
    monkeypatch.delenv("TVDB_API_KEY")
    assert cli.main(["--show-id", "42", str(videos)]) == 1


def test_show_search_without_results(env):
    home, videos = env
    assert cli.main(["--show", "Nothing", str(videos)]) == 1


def test_show_and_show_id_are_exclusive(env):
    home, videos = env
    with pytest.raises(SystemExit):
        cli.main(["--show", "x", "--show-id", "42", str(videos)])
    with pytest.raises(SystemExit):
        cli.main([str(videos)])


def test_interrupt_exit_code(env, monkeypatch):
    home, videos = env

    def interrupted(args):
        raise KeyboardInterrupt

    monkeypatch.setattr(cli, "run", interrupted)
    assert cli.main(["--show-id", "42", str(videos)]) == 130

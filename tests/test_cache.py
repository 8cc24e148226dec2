import json

from episode_matcher.cache import EpisodeCache
from episode_matcher.models import EpisodeEntry

def make_entry(code, season, number, name="Title"):
    return EpisodeEntry(production_code=code, season_number=season, episode_number=number, name=name)

def test_code_lookup_is_case_insensitive(tmp_path):
    cache = EpisodeCache(tmp_path / "cache.json")
    cache.set_episode("123", make_entry("4AJX11", 5, 3))
    assert cache.get_episode_by_code("123", "4ajx11").season_number == 5
    assert cache.get_episode_by_code("123", "4AJX11").episode_number == 3

def test_code_lookup_misses(tmp_path):
    cache = EpisodeCache(tmp_path / "cache.json")
    cache.set_episode("123", make_entry("4AJX11", 5, 3))
    assert cache.get_episode_by_code("123", "1080P") is None
    assert cache.get_episode_by_code("999", "4AJX11") is None
    assert cache.get_episode_by_code("123", "") is None

def test_episode_without_code_only_in_season_index(tmp_path):
    cache = EpisodeCache(tmp_path / "cache.json")
    cache.set_episode("123", make_entry(None, 1, 1, "Pilot"))
    assert cache.get_episode_by_season_episode("123", 1, 1).name == "Pilot"
    assert "123" not in cache.episodes_by_production_code
    assert cache.has_episodes("123")

def test_has_episodes(tmp_path):
    cache = EpisodeCache(tmp_path / "cache.json")
    assert not cache.has_episodes("123")
    cache.set_series_name("123", "Show")
    assert not cache.has_episodes("123")
    cache.set_episode("123", make_entry("1X01", 1, 1))
    assert cache.has_episodes("123")

def test_set_episode_overwrites(tmp_path):
    cache = EpisodeCache(tmp_path / "cache.json")
    cache.set_episode("123", make_entry("1X01", 1, 1, "Old"))
    cache.set_episode("123", make_entry("1X01", 1, 1, "New"))
    assert cache.get_episode_by_code("123", "1x01").name == "New"
    assert cache.get_episode_by_season_episode("123", 1, 1).name == "New"

def test_save_and_load(tmp_path):
    path = tmp_path / "nested" / "cache.json"
    cache = EpisodeCache(path)
    cache.set_series_name("123", "The Show")
    cache.set_episode("123", make_entry("2ABC05", 2, 5, "Fifth"))
    cache.set_episode("123", make_entry(None, 0, 1, "Special"))
    cache.save()

    assert path.exists()
    assert not (tmp_path / "nested" / "cache.json.tmp").exists()

    loaded = EpisodeCache.load(path)
    assert loaded.get_series_name("123") == "The Show"
    assert loaded.get_episode_by_code("123", "2abc05") == make_entry("2ABC05", 2, 5, "Fifth")
    assert loaded.get_episode_by_season_episode("123", 0, 1) == make_entry(None, 0, 1, "Special")

def test_saved_layout(tmp_path):
    path = tmp_path / "cache.json"
    cache = EpisodeCache(path)
    cache.set_series_name("123", "The Show")
    cache.set_episode("123", make_entry("2ABC05", 2, 5, "Fifth"))
    cache.save()

    data = json.loads(path.read_text(encoding="utf-8"))
    assert data["series"] == {"123": "The Show"}
    assert data["episodesByProductionCode"]["123"]["2abc05"]["productionCode"] == "2ABC05"
    assert data["episodesBySeasonEpisode"]["123"]["2"]["5"] == {
        "productionCode": "2ABC05",
        "seasonNumber": 2,
        "episodeNumber": 5,
        "name": "Fifth",
    }

def test_load_missing_file(tmp_path):
    cache = EpisodeCache.load(tmp_path / "missing.json")
    assert cache.series == {}
    assert not cache.has_episodes("123")

def test_load_corrupt_file(tmp_path):
    path = tmp_path / "cache.json"
    path.write_text("{not json", encoding="utf-8")
    cache = EpisodeCache.load(path)
    assert cache.series == {}
    assert cache.path == path

def test_load_malformed_entries(tmp_path):
    path = tmp_path / "cache.json"
    path.write_text(json.dumps({
        "series": {"1": "Show"},
        "episodesBySeasonEpisode": {"1": {"1": {"1": {"name": "missing numbers"}}}},
    }), encoding="utf-8")
    cache = EpisodeCache.load(path)
    assert cache.series == {}
    assert not cache.has_episodes("1")

def test_load_deeply_nested_file(tmp_path):
    path = tmp_path / "cache.json"
    path.write_text("[" * 200000 + "]" * 200000, encoding="utf-8")
    cache = EpisodeCache.load(path)
    assert cache.series == {}
    assert not cache.has_episodes("1")

from pathlib import Path

import pytest

from episode_matcher.config import (
    ConfigError,
    DEFAULT_PAGER,
    get_model_dir,
    get_tvdb_api_key,
    load_config_file,
    load_settings,
)

@pytest.fixture
def home(tmp_path, monkeypatch):
    monkeypatch.setenv("EPISODE_MATCHER_HOME", str(tmp_path))
    monkeypatch.delenv("TVDB_API_KEY", raising=False)
    monkeypatch.delenv("EPISODE_MATCHER_MODEL_DIR", raising=False)
    monkeypatch.delenv("PAGER", raising=False)
    return tmp_path

def write_config(home, text):
    (home / "config.toml").write_text(text, encoding="utf-8")

def test_api_key_precedence(home, monkeypatch):
    write_config(home, 'tvdb_api_key = "from-file"\n')
    assert get_tvdb_api_key() == "from-file"

    monkeypatch.setenv("TVDB_API_KEY", "from-env")
    assert get_tvdb_api_key() == "from-env"
    assert get_tvdb_api_key("from-cli") == "from-cli"

def test_api_key_missing(home):
    with pytest.raises(ConfigError):
        get_tvdb_api_key()

def test_missing_config_file(home):
    assert load_config_file() == {}

def test_invalid_config_file(home):
    write_config(home, "tvdb_api_key = \n")
    with pytest.raises(ConfigError):
        load_config_file()

def test_settings_defaults(home, monkeypatch):
    monkeypatch.setenv("TVDB_API_KEY", "key")
    settings = load_settings()
    assert settings.tvdb_api_key == "key"
    assert settings.data_dir == home
    assert settings.cache_path == home / "cache.json"
    assert settings.model_dir == home / "models"
    assert settings.pager == DEFAULT_PAGER
    assert settings.ocr_gpu is None

def test_settings_from_file(home):
    write_config(home, '\n'.join([
        'tvdb_api_key = "key"',
        'pager = "more"',
        'ocr_gpu = "cpu"',
        'request_timeout = 5',
        '',
    ]))
    settings = load_settings()
    assert settings.pager == "more"
    assert settings.ocr_gpu is False
    assert settings.request_timeout == 5.0

def test_pager_from_environment(home, monkeypatch):
    monkeypatch.setenv("PAGER", "most")
    settings = load_settings("key")
    assert settings.pager == "most"

def test_ocr_device_override(home):
    write_config(home, 'tvdb_api_key = "key"\nocr_gpu = "cpu"\n')
    assert load_settings(ocr_device="gpu").ocr_gpu is True
    assert load_settings(ocr_device="auto").ocr_gpu is None

def test_invalid_ocr_device(home):
    write_config(home, 'tvdb_api_key = "key"\nocr_gpu = "tpu"\n')
    with pytest.raises(ConfigError):
        load_settings()

def test_model_dir_precedence(home, monkeypatch):
    assert get_model_dir({"model_dir": "/opt/models"}) == Path("/opt/models")
    monkeypatch.setenv("EPISODE_MATCHER_MODEL_DIR", "/srv/models")
    assert get_model_dir({"model_dir": "/opt/models"}) == Path("/srv/models")

def test_pager_environment_beats_file(home, monkeypatch):
    write_config(home, 'tvdb_api_key = "key"\npager = "more"\n')
    monkeypatch.setenv("PAGER", "most")
    assert load_settings().pager == "most"

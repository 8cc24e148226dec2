"""Configuration loading for episode-matcher.

Values are resolved with the following precedence (highest to lowest):
1. CLI arguments (passed in by the caller)
2. Environment variables
3. Config file (~/.episode-matcher/config.toml)
4. Default values

Environment variables:
- TVDB_API_KEY: TheTVDB v4 API key
- EPISODE_MATCHER_HOME: data directory (default ~/.episode-matcher)
- EPISODE_MATCHER_MODEL_DIR: OCR model directory (default <data dir>/models)
- PAGER: pager used to display subtitles (default less)
"""

import logging
import os
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

DEFAULT_DATA_DIR = Path.home() / ".episode-matcher"
DEFAULT_PAGER = "less"
DEFAULT_REQUEST_TIMEOUT = 30.0


class ConfigError(Exception):
    """Raised when required configuration is missing or unreadable."""


@dataclass
class Settings:
    """Resolved settings for a single run."""

    tvdb_api_key: str
    data_dir: Path
    model_dir: Path
    ocr_gpu: Optional[bool] = None
    pager: str = DEFAULT_PAGER
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT

    @property
    def cache_path(self) -> Path:
        return self.data_dir / "cache.json"


def get_data_dir() -> Path:
    """Return the data directory, honouring EPISODE_MATCHER_HOME."""
    env_path = os.environ.get("EPISODE_MATCHER_HOME")
    if env_path:
        return Path(env_path).expanduser()
    return DEFAULT_DATA_DIR


def get_config_path() -> Path:
    return get_data_dir() / "config.toml"


def get_cache_path() -> Path:
    return get_data_dir() / "cache.json"


def get_model_dir(config: Optional[Dict[str, Any]] = None) -> Path:
    """Return the directory where OCR models are stored or downloaded."""
    env_path = os.environ.get("EPISODE_MATCHER_MODEL_DIR")
    if env_path:
        return Path(env_path).expanduser()
    if config and config.get("model_dir"):
        return Path(str(config["model_dir"])).expanduser()
    return get_data_dir() / "models"


def load_config_file(path: Optional[Path] = None) -> Dict[str, Any]:
    """Read the TOML config file.

    A missing file yields an empty dict.

    Raises:
        ConfigError: If the file exists but cannot be read or parsed.
    """
    path = path or get_config_path()
    if not path.exists():
        return {}
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        raise ConfigError(f"Failed to read config file {path}: {e}") from e


def _parse_ocr_device(value: Optional[str]) -> Optional[bool]:
    if value is None:
        return None
    value = value.strip().lower()
    if value == "gpu":
        return True
    if value == "cpu":
        return False
    if value == "auto":
        return None
    raise ConfigError(f"Invalid ocr_gpu value {value!r} (expected auto, gpu or cpu)")


def get_tvdb_api_key(cli_key: Optional[str] = None, config: Optional[Dict[str, Any]] = None) -> str:
    """Resolve the TVDB API key.

    Raises:
        ConfigError: If no key is found anywhere.
    """
    if cli_key:
        return cli_key
    env_key = os.environ.get("TVDB_API_KEY")
    if env_key:
        return env_key
    if config is None:
        config = load_config_file()
    file_key = config.get("tvdb_api_key")
    if file_key:
        return str(file_key)
    raise ConfigError(
        "TVDB API key not found. Set the TVDB_API_KEY environment variable, pass --tvdb-key, "
        f"or create {get_config_path()} with tvdb_api_key = \"your-key\""
    )


def load_settings(cli_key: Optional[str] = None, ocr_device: Optional[str] = None) -> Settings:
    """Resolve all settings for a run.

    Args:
        cli_key: API key given on the command line, if any
        ocr_device: 'auto', 'gpu' or 'cpu' from the command line, if given

    Raises:
        ConfigError: If the API key is missing or the config file is invalid.
    """
    config = load_config_file()
    api_key = get_tvdb_api_key(cli_key, config)

    pager = os.environ.get("PAGER") or config.get("pager") or DEFAULT_PAGER
    try:
        timeout = float(config.get("request_timeout", DEFAULT_REQUEST_TIMEOUT))
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid request_timeout in config file: {e}") from e

    settings = Settings(
        tvdb_api_key=api_key,
        data_dir=get_data_dir(),
        model_dir=get_model_dir(config),
        ocr_gpu=_parse_ocr_device(ocr_device or config.get("ocr_gpu")),
        pager=str(pager),
        request_timeout=timeout,
    )
    logger.debug(f"Loaded settings: data_dir={settings.data_dir}, model_dir={settings.model_dir}")
    return settings

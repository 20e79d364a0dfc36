"""Tessellate configuration management.

Handles <data dir>/config.json for user settings. The data directory is
~/.tessellate unless TESSELLATE_HOME points elsewhere.
"""

import os
from pathlib import Path

import orjson

DATA_DIR_ENV = "TESSELLATE_HOME"
LOG_LEVEL_ENV = "TESSELLATE_LOG_LEVEL"

DEFAULT_MAX_LISTED_SESSIONS = 50
DEFAULT_MAX_EXITED_SESSIONS = 50
DEFAULT_MAX_EXITED_SESSION_AGE_DAYS = 30
DEFAULT_LOG_LEVEL = "INFO"

INT_SETTINGS = {
    "max_listed_sessions": DEFAULT_MAX_LISTED_SESSIONS,
    "max_exited_sessions": DEFAULT_MAX_EXITED_SESSIONS,
    "max_exited_session_age_days": DEFAULT_MAX_EXITED_SESSION_AGE_DAYS,
}


def get_data_dir() -> Path:
    """Get the root directory for all tessellate data."""
    if env_dir := os.environ.get(DATA_DIR_ENV):
        return Path(env_dir)
    return Path.home() / ".tessellate"


def get_config_path() -> Path:
    """Get the path to tessellate's config file."""
    return get_data_dir() / "config.json"


def read_config() -> dict:
    """Read config, returning empty dict if not found."""
    config_path = get_config_path()
    if not config_path.exists():
        return {}
    try:
        content = config_path.read_bytes()
        return orjson.loads(content) if content else {}
    except (orjson.JSONDecodeError, OSError):
        return {}


def write_config(config: dict) -> None:
    """Write config."""
    config_path = get_config_path()
    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_bytes(orjson.dumps(config, option=orjson.OPT_INDENT_2))


def get_int_setting(name: str) -> int:
    """Get an integer setting, falling back to its default.

    Raises:
        KeyError: If name is not a known setting.
    """
    default = INT_SETTINGS[name]
    value = read_config().get(name, default)
    if not isinstance(value, int) or isinstance(value, bool):
        return default
    return value


def set_int_setting(name: str, value: int) -> None:
    """Set an integer setting.

    Raises:
        KeyError: If name is not a known setting.
        ValueError: If value is negative.
    """
    if name not in INT_SETTINGS:
        raise KeyError(name)
    if value < 0:
        raise ValueError(f"{name} must be >= 0")
    config = read_config()
    config[name] = value
    write_config(config)


def get_max_listed_sessions() -> int:
    """Get how many sessions the list view shows (default: 50)."""
    return get_int_setting("max_listed_sessions")


def get_max_exited_sessions() -> int:
    """Get how many exited sessions cleanup keeps (default: 50)."""
    return get_int_setting("max_exited_sessions")


def get_max_exited_session_age_days() -> int:
    """Get the age in days after which exited sessions are pruned.

    0 disables age-based pruning.
    """
    return get_int_setting("max_exited_session_age_days")


def get_log_level() -> str:
    """Get the log level from the environment, then config, then default."""
    if env_level := os.environ.get(LOG_LEVEL_ENV):
        return env_level.upper()
    level = read_config().get("log_level", DEFAULT_LOG_LEVEL)
    return str(level).upper()

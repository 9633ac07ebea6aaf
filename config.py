# config.py - Runtime configuration (DB path, reset poll interval, app base dir)
#
# Single place for loading configuration. Persistence (database.py) and the
# scheduler import from here instead of defining config logic themselves.

import json
import logging
import os
import sys
from pathlib import Path

logger = logging.getLogger(__name__)

# Environment variable to override database path directly (highest priority)
DB_PATH_ENV = "INSTRUMENT_TRACKER_DB_PATH"
# Environment variable to override the fallback reset poll interval (seconds)
POLL_SECONDS_ENV = "INSTRUMENT_TRACKER_POLL_SECONDS"

DEFAULT_POLL_SECONDS = 60
CONFIG_FILE_NAME = "config.json"


def get_app_base_dir() -> Path:
    """Directory containing the app (install dir when frozen, script dir when run from source)."""
    if getattr(sys, "frozen", False):
        return Path(sys.executable).resolve().parent
    return Path(__file__).resolve().parent


def get_user_data_dir() -> Path:
    """%APPDATA%\\InstrumentTracker on Windows, ~/.config/InstrumentTracker elsewhere."""
    if sys.platform == "win32":
        base = os.environ.get("APPDATA", "")
        base = Path(base) if base else Path.home() / "AppData" / "Roaming"
    else:
        base = Path.home() / ".config"
    return base / "InstrumentTracker"


DEFAULT_DB_PATH = get_user_data_dir() / "instruments.db"


def load_config_file(base: Path | None = None) -> dict:
    """
    Read config.json next to the app. Returns {} when missing or malformed
    (a broken config file is logged, never fatal).
    """
    config_path = (base or get_app_base_dir()) / CONFIG_FILE_NAME
    if not config_path.is_file():
        return {}
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (json.JSONDecodeError, OSError) as e:
        logger.warning("Ignoring unreadable config file %s: %s", config_path, e)
        return {}
    if not isinstance(data, dict):
        logger.warning("Ignoring config file %s: top level is not an object", config_path)
        return {}
    return data


def load_db_path(base: Path | None = None) -> Path:
    """
    Load database path from configuration.
    Order: DB_PATH_ENV > config.json (db_path) > DEFAULT_DB_PATH.
    Relative paths in config.json are resolved against the config file's directory.
    """
    env_path = os.environ.get(DB_PATH_ENV)
    if env_path and env_path.strip():
        return Path(env_path.strip()).expanduser().resolve()

    base = base or get_app_base_dir()
    raw = load_config_file(base).get("db_path")
    if raw and isinstance(raw, str) and raw.strip():
        p = Path(raw.strip()).expanduser()
        if not p.is_absolute():
            p = (base / p).resolve()
        return p

    return DEFAULT_DB_PATH


def load_poll_seconds(base: Path | None = None) -> int:
    """
    Interval of the safety-net reset poll.
    Order: POLL_SECONDS_ENV > config.json (poll_seconds) > DEFAULT_POLL_SECONDS.
    Non-positive or non-numeric values fall back to the default.
    """
    candidates = [os.environ.get(POLL_SECONDS_ENV), load_config_file(base).get("poll_seconds")]
    for raw in candidates:
        if raw is None or raw == "":
            continue
        try:
            seconds = int(raw)
        except (TypeError, ValueError):
            logger.warning("Ignoring invalid poll interval %r", raw)
            continue
        if seconds > 0:
            return seconds
        logger.warning("Ignoring non-positive poll interval %r", raw)
    return DEFAULT_POLL_SECONDS

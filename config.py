# config.py - Runtime configuration (DB path, advisor model, app base dir)
#
# Single place for loading configuration. Persistence (database.py) and the
# advisor service import from here instead of defining config logic themselves.

import json
import logging
import os
import sys
from pathlib import Path

logger = logging.getLogger(__name__)

APP_NAME = "MaintenanceTracker"

# Environment variable to override database path directly (highest priority)
DB_PATH_ENV = "MAINTENANCE_TRACKER_DB_PATH"
# Environment variable to override the advisor's language model
ADVISOR_MODEL_ENV = "MAINTENANCE_TRACKER_ADVISOR_MODEL"

DEFAULT_ADVISOR_MODEL = "gpt-4o-mini"
CONFIG_FILE_NAME = "config.json"


def get_app_base_dir() -> Path:
    """Directory containing the app (install dir when frozen, script dir when run from source)."""
    if getattr(sys, "frozen", False):
        return Path(sys.executable).resolve().parent
    return Path(__file__).resolve().parent


def get_user_config_dir() -> Path:
    """Per-user data directory: %APPDATA%\\MaintenanceTracker on Windows, ~/.config/MaintenanceTracker elsewhere."""
    if sys.platform == "win32":
        base = os.environ.get("APPDATA", "")
        base = Path(base) if base else Path.home() / "AppData" / "Roaming"
    else:
        base = Path.home() / ".config"
    return base / APP_NAME


DEFAULT_DB_PATH = get_user_config_dir() / "maintenance.db"


def load_config_file(base: Path | None = None) -> dict:
    """Read config.json next to the app. Returns {} when missing or unreadable."""
    config_path = (base or get_app_base_dir()) / CONFIG_FILE_NAME
    if not config_path.is_file():
        return {}
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (json.JSONDecodeError, OSError) as e:
        logger.warning("Ignoring unreadable %s: %s", config_path, e)
        return {}
    return data if isinstance(data, dict) else {}


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


def load_advisor_model(base: Path | None = None) -> str:
    """Advisor model name. Order: ADVISOR_MODEL_ENV > config.json (advisor_model) > DEFAULT_ADVISOR_MODEL."""
    env_model = (os.environ.get(ADVISOR_MODEL_ENV) or "").strip()
    if env_model:
        return env_model
    raw = load_config_file(base).get("advisor_model")
    if raw and isinstance(raw, str) and raw.strip():
        return raw.strip()
    return DEFAULT_ADVISOR_MODEL

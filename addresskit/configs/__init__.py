import yaml
import os
import logging
from pathlib import Path
from dotenv import dotenv_values
from typing import Any

logger = logging.getLogger(__name__)

ENV_KEYS = [
    "APP_NAME",
    "DEBUG",
    "MONGO_URI",
    "MONGO_DB",
    "FALLBACK_V1_PATH",
    "FALLBACK_V2_PATH",
    "DELETE_LOG_PATH",
]

CONFIGS_DIR = Path(__file__).resolve().parent
REPO_ROOT = CONFIGS_DIR.parent.parent


def _load_env(filepath: Path) -> dict:
    """`.env` values, with the process environment winning for known keys."""
    loaded = {}
    if filepath.exists():
        loaded = dict(dotenv_values(filepath))
    elif os.environ.get("ENV_FILE_DIR"):
        loaded = dict(dotenv_values(Path(os.environ["ENV_FILE_DIR"]) / ".env"))
    else:
        logger.warning(".env file not found at '%s'", filepath)
    for key in ENV_KEYS:
        if os.environ.get(key) is not None:
            loaded[key] = os.environ[key]
    return loaded


def _with_root_path(data):
    """Replaces `<ROOT_PATH>` in every string of the loaded YAML."""
    if isinstance(data, dict):
        return {key: _with_root_path(value) for key, value in data.items()}
    if isinstance(data, list):
        return [_with_root_path(item) for item in data]
    if isinstance(data, str):
        return data.replace("<ROOT_PATH>", str(REPO_ROOT))
    return data


def _load_configs(filepath: Path) -> dict:
    if not filepath.exists():
        return {}
    try:
        with open(filepath, "r", encoding="utf-8") as f:
            return _with_root_path(yaml.safe_load(f) or {})
    except yaml.YAMLError as e:
        logger.error("Error loading YAML file '%s': %s", filepath, e)
        return {}


def get_setting(section: str, key: str, default: Any = None) -> Any:
    """Reads configs[section][key], tolerating a missing section."""
    return (configs.get(section) or {}).get(key, default)


def env_flag(value: Any) -> bool:
    return str(value).strip().lower() in ("1", "true", "yes", "on")


env: dict = _load_env(REPO_ROOT / ".env")
configs: dict = _load_configs(CONFIGS_DIR / "config.yaml")

from __future__ import annotations

import os
import platform
import subprocess
from pathlib import Path
from typing import Any, Dict

import keyring
import yaml


APP_DIR_NAME = "riftstats"
CONFIG_FILE_NAME = "config.yaml"
DB_FILE_NAME = "riftstats.db"
KEYRING_SERVICE = "riftstats.riot"


DEFAULT_CONFIG: Dict[str, Any] = {
    "riot": {
        "api_key_env": "RIOT_API_KEY",
        "platform": "euw1",  # routing for Match-V5 is derived from this
    },
    "ingest": {
        "tier": "CHALLENGER",
        "concurrency": 3,
        # Remakes never reach the buckets
        "min_duration_s": 300,
    },
    # Tuned constants, kept here so they can be recalibrated without code changes
    "scoring": {
        "prior_strength": 10.0,
        "dispersion_ratio": 0.4,
        "dispersion_floor": 0.1,
        "z_clip": 3.0,
        "lane_weight": 0.15,
        "logistic_steepness": 1.7,
        "win_bonus": 10.0,
        "contribution_threshold": 0.10,
        "contribution_bonus": 5.0,
    },
}


def _user_config_dir() -> Path:
    system = platform.system()
    if system == "Windows":
        appdata = os.getenv("APPDATA")
        if appdata:
            return Path(appdata) / APP_DIR_NAME
    elif system == "Darwin":
        return Path.home() / "Library" / "Application Support" / APP_DIR_NAME
    xdg = os.getenv("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg) / APP_DIR_NAME
    return Path.home() / ".config" / APP_DIR_NAME


def _user_data_dir() -> Path:
    system = platform.system()
    if system == "Windows":
        localappdata = os.getenv("LOCALAPPDATA") or os.getenv("APPDATA")
        if localappdata:
            return Path(localappdata) / APP_DIR_NAME
    elif system == "Darwin":
        return Path.home() / "Library" / "Application Support" / APP_DIR_NAME
    xdg = os.getenv("XDG_DATA_HOME")
    if xdg:
        return Path(xdg) / APP_DIR_NAME
    return Path.home() / ".local" / "share" / APP_DIR_NAME


def config_path() -> str:
    return str(_user_config_dir() / CONFIG_FILE_NAME)


def db_path() -> str:
    return str(_user_data_dir() / DB_FILE_NAME)


def cache_dir() -> Path:
    return _user_data_dir() / "cache"


def ensure_paths() -> None:
    _user_config_dir().mkdir(parents=True, exist_ok=True)
    _user_data_dir().mkdir(parents=True, exist_ok=True)
    cfg_file = Path(config_path())
    if not cfg_file.exists():
        cfg_file.write_text(yaml.safe_dump(DEFAULT_CONFIG, sort_keys=False))


def merge_defaults(cfg: Dict[str, Any], defaults: Dict[str, Any]) -> Dict[str, Any]:
    """Fill missing keys of ``cfg`` from ``defaults``; values already in ``cfg`` win."""
    out = dict(cfg)
    for k, v in defaults.items():
        if isinstance(v, dict):
            out[k] = merge_defaults(out.get(k) or {}, v)
        else:
            out.setdefault(k, v)
    return out


def get_config() -> Dict[str, Any]:
    ensure_paths()
    with open(config_path(), "r", encoding="utf-8") as f:
        cfg = yaml.safe_load(f) or {}
    return merge_defaults(cfg, DEFAULT_CONFIG)


def open_config_in_editor() -> bool:
    path = config_path()
    try:
        if platform.system() == "Windows":
            os.startfile(path)  # type: ignore[attr-defined]
        elif platform.system() == "Darwin":
            subprocess.run(["open", path], check=False)
        else:
            subprocess.run(["xdg-open", path], check=False)
        return True
    except OSError:
        return False


def get_api_key(cfg: Dict[str, Any] | None = None) -> str | None:
    # prefer keyring
    key = keyring.get_password(KEYRING_SERVICE, "api_key")
    if key:
        return key
    cfg = cfg if cfg is not None else get_config()
    env_name = cfg.get("riot", {}).get("api_key_env", "RIOT_API_KEY")
    return os.getenv(env_name)


def set_api_key(value: str) -> None:
    keyring.set_password(KEYRING_SERVICE, "api_key", value)

"""Lightweight loader for navigation and world configuration."""
from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

log = logging.getLogger(__name__)

_ENV_KEY = "MINERNAV_CONFIG"
_DEFAULT_PATH = Path(__file__).resolve().parent.parent / "config" / "engine.json"
_CONFIG_DATA: Optional[Dict[str, Any]] = None


def _config_path() -> Path:
    override = os.environ.get(_ENV_KEY, "").strip()
    return Path(override) if override else _DEFAULT_PATH


def _load() -> Dict[str, Any]:
    path = _config_path()
    try:
        with path.open("r", encoding="utf-8") as handle:
            data = json.load(handle)
    except FileNotFoundError:
        return {}
    except (OSError, ValueError) as exc:
        log.warning("config %s unreadable, using defaults: %s", path, exc)
        return {}
    if not isinstance(data, dict):
        log.warning("config %s is not a JSON object, using defaults", path)
        return {}
    return data


def _ensure_loaded() -> Dict[str, Any]:
    global _CONFIG_DATA
    if _CONFIG_DATA is None:
        _CONFIG_DATA = _load()
    return _CONFIG_DATA


def reload() -> None:
    """Drop the cached config so the next lookup re-reads the file."""
    global _CONFIG_DATA
    _CONFIG_DATA = None


def get(path: str, default: Any = None) -> Any:
    """Return a config value using dotted paths, or default when missing."""
    data = _ensure_loaded()
    if not path:
        return data

    current: Any = data
    for segment in path.split('.'):
        if isinstance(current, dict) and segment in current:
            current = current[segment]
        else:
            return default
    return current

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Mapping, Optional

import yaml

from lw_core.config import CollectionConfig


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "y")


INITIAL_SIZE = _env_int("LW_INITIAL_SIZE", 20)
PAGE_SIZE = _env_int("LW_PAGE_SIZE", 20)
ASCENDING = _env_bool("LW_ASCENDING", True)
FIXED_ITEM_POSITIONS = _env_bool("LW_FIXED_ITEM_POSITIONS", False)

LOG_LEVEL = os.getenv("LW_LOG_LEVEL", "INFO")
LOG_DIR = os.getenv("LW_LOG_DIR", "logs")
EVENT_LOG_DIR = os.getenv("LW_EVENT_LOG_DIR", "out/event_logs")

DEFAULT_CONFIG_PATH = "config/config.example.yaml"


def load_config(path: Optional[str | Path] = None) -> dict:
    """Read a YAML config file: `path`, else `CONFIG_PATH`, else the example config."""
    resolved = path or os.getenv("CONFIG_PATH") or DEFAULT_CONFIG_PATH
    with open(resolved, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f)
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ValueError(f"Config {resolved} must be a mapping (got {type(raw).__name__})")
    return raw


def collection_config(raw: Optional[Mapping[str, Any]] = None) -> CollectionConfig:
    """Build a CollectionConfig from a config mapping, falling back to env defaults."""
    raw = raw or {}
    section = raw.get("collection", raw)
    return CollectionConfig(
        initial_size=section.get("initial_size", INITIAL_SIZE),
        page_size=section.get("page_size", PAGE_SIZE),
        ascending=section.get("ascending", ASCENDING),
        fixed_item_positions=section.get("fixed_item_positions", FIXED_ITEM_POSITIONS),
    )


def config_log_level(raw: Optional[Mapping[str, Any]] = None) -> str:
    """`log_level` from a config mapping, else `LW_LOG_LEVEL`."""
    level = (raw or {}).get("log_level")
    return str(level) if level else LOG_LEVEL

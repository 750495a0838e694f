"""Settings loaded from YAML, read with dot-separated keys."""

from pathlib import Path
from typing import Any

import yaml

_SENTINEL = object()

DEFAULT_SETTINGS: dict = {
    "storage": {"transactions_path": "data/transactions.json"},
    "prices": {
        "base_url": "https://api.coingecko.com/api/v3",
        "vs_currency": "usd",
        "timeout_seconds": 10.0,
        "cache_dir": None,
        "cache_ttl_seconds": 60,
    },
    "history": {"days": 30},
}


def load_config(path: str) -> dict:
    """Load YAML config file. Raises FileNotFoundError if missing."""
    file_path = Path(path)
    if not file_path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")
    with open(file_path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def load_settings(path: str | None = None) -> dict:
    """Defaults overlaid with the YAML file at ``path`` when it exists."""
    settings = _merge({}, DEFAULT_SETTINGS)
    if path and Path(path).exists():
        settings = _merge(settings, load_config(path))
    return settings


def get_setting(config: dict, key: str, default: Any = _SENTINEL) -> Any:
    """Access nested config with dot notation: 'prices.vs_currency'.

    Args:
        config: Loaded config dict.
        key: Dot-separated key path.
        default: Default value if key missing. Raises KeyError if not provided.
    """
    current = config
    for part in key.split("."):
        if isinstance(current, dict) and part in current:
            current = current[part]
        elif default is not _SENTINEL:
            return default
        else:
            raise KeyError(f"Config key not found: {key}")
    return current


def _merge(base: dict, override: dict) -> dict:
    out = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(out.get(key), dict):
            out[key] = _merge(out[key], value)
        else:
            out[key] = value
    return out

"""Disk cache for JSON-serializable price payloads."""

import hashlib
import json
import time
from pathlib import Path
from typing import Any, Optional


class DiskCache:
    """One JSON file per key; entries older than ``ttl_seconds`` are misses."""

    def __init__(self, cache_dir: str, ttl_seconds: Optional[float] = None):
        self._dir = Path(cache_dir)
        self._dir.mkdir(parents=True, exist_ok=True)
        self._ttl = ttl_seconds

    def _key_path(self, key: str) -> Path:
        safe_key = hashlib.md5(key.encode()).hexdigest()
        return self._dir / f"{safe_key}.json"

    def set(self, key: str, value: Any) -> None:
        path = self._key_path(key)
        payload = {"stored_at": time.time(), "value": value}
        with open(path, "w", encoding="utf-8") as f:
            json.dump(payload, f, ensure_ascii=False)

    def get(self, key: str) -> Optional[Any]:
        path = self._key_path(key)
        if not path.exists():
            return None
        with open(path, "r", encoding="utf-8") as f:
            try:
                payload = json.load(f)
            except json.JSONDecodeError:
                return None
        if self._ttl is not None and time.time() - payload["stored_at"] > self._ttl:
            return None
        return payload["value"]

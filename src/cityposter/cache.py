"""Caching utilities for map data.

Two caches live here:

* ``DatasetCache`` keeps classified Overpass results in memory for a fixed
  time-to-live. Expired entries are only dropped when they are looked up
  again; nothing sweeps the map in the background.
* A small on-disk JSON cache for geocoded coordinates, so repeated runs do
  not hit the geocoding service.
"""

from __future__ import annotations

import json
import logging
import os
import re
import time
from pathlib import Path
from typing import TYPE_CHECKING, Any

from .models import CacheEntry


if TYPE_CHECKING:
    from collections.abc import Callable

    from .models import ClassifiedDataset


__all__ = [
    "DatasetCache",
    "cache_get",
    "cache_set",
    "clear_cache",
    "dataset_cache_key",
    "get_cache_dir",
    "get_cache_stats",
]


logger = logging.getLogger(__name__)

CACHE_EXTENSION = ".json"
_PATH_SEPARATORS = re.compile(r"[\\/]")


def dataset_cache_key(lat: float, lon: float, radius_m: float) -> str:
    """Quantize a request into a cache key.

    Coordinates are rounded to 4 decimals (about 11 m), so requests that
    differ by less than that share an entry.
    """
    radius = int(radius_m) if float(radius_m).is_integer() else radius_m
    return f"combined_{lat:.4f}_{lon:.4f}_{radius}"


class DatasetCache:
    """In-memory cache of classified datasets with a fixed time-to-live."""

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._stats = {"hits": 0, "misses": 0, "expired": 0}

    def get(self, key: str) -> ClassifiedDataset | None:
        """Return the dataset for ``key`` if present and fresh.

        A stale entry is evicted on the spot and reported as a miss.
        """
        entry = self._entries.get(key)
        if entry is None:
            self._stats["misses"] += 1
            logger.debug("Cache miss", extra={"key": key})
            return None
        if self._clock() - entry.timestamp >= self.ttl_seconds:
            self._stats["expired"] += 1
            self._stats["misses"] += 1
            del self._entries[key]
            logger.debug("Cache entry expired", extra={"key": key})
            return None
        self._stats["hits"] += 1
        logger.debug("Cache hit", extra={"key": key})
        return entry.data

    def set(self, key: str, data: ClassifiedDataset) -> None:
        self._entries[key] = CacheEntry(key=key, data=data, timestamp=self._clock())

    def clear(self) -> int:
        """Drop every entry and return how many were held."""
        count = len(self._entries)
        self._entries.clear()
        logger.info("Cleared %d cached datasets", count)
        return count

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def stats(self) -> dict[str, int]:
        return {**self._stats, "entries": len(self._entries)}


def get_cache_dir() -> Path:
    """Return the on-disk cache directory (``CITYPOSTER_CACHE_DIR`` or ``.cache``)."""
    cache_dir = Path(os.environ.get("CITYPOSTER_CACHE_DIR", ".cache"))
    cache_dir.mkdir(parents=True, exist_ok=True)
    return cache_dir


def _entry_path(key: str) -> Path:
    return get_cache_dir() / f"{_PATH_SEPARATORS.sub('_', key)}{CACHE_EXTENSION}"


def _entries() -> list[Path]:
    return sorted(get_cache_dir().glob(f"*{CACHE_EXTENSION}"))


def cache_get(key: str) -> Any | None:
    """Return the JSON value stored under ``key``, or None on a miss.

    Unreadable entries count as misses. Two-element lists come back as
    tuples so coordinate pairs survive the round trip.
    """
    path = _entry_path(key)
    try:
        value = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        logger.debug("Cache miss", extra={"key": key})
        return None
    except (OSError, ValueError) as e:
        logger.warning("Ignoring unreadable cache entry %s: %s", path.name, e)
        return None

    logger.debug("Cache hit", extra={"key": key})
    if isinstance(value, list) and len(value) == 2:
        return tuple(value)
    return value


def cache_set(key: str, value: Any) -> bool:
    """Store a JSON-serializable value under ``key``.

    Returns:
        False if the value could not be serialized or written.
    """
    try:
        payload = json.dumps(list(value) if isinstance(value, tuple) else value)
        _entry_path(key).write_text(payload, encoding="utf-8")
    except (OSError, TypeError, ValueError) as e:
        logger.warning("Could not cache %s: %s", key, e)
        return False
    logger.debug("Cache write", extra={"key": key})
    return True


def get_cache_stats() -> dict[str, Any]:
    sizes = [path.stat().st_size for path in _entries()]
    total = sum(sizes)
    return {
        "total_files": len(sizes),
        "total_size_bytes": total,
        "total_size_mb": round(total / (1024 * 1024), 2),
    }


def clear_cache() -> int:
    """Delete every on-disk cache entry and return how many were removed."""
    deleted = 0
    for path in _entries():
        try:
            path.unlink()
        except OSError as e:
            logger.warning("Could not delete %s: %s", path, e)
            continue
        deleted += 1
    logger.info("Cleared %d cache files", deleted)
    return deleted

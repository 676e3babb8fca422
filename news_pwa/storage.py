"""Durable per-section cache of aggregated news with a freshness window."""

import json
import logging
import re
import time
from pathlib import Path

from news_pwa.models import CacheEntry, item_from_dict, item_to_dict

logger = logging.getLogger(__name__)

CACHE_DURATION_MS = 60 * 60 * 1000
KEY_PREFIX = "news_"

_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9_.-]")


def now_ms() -> int:
    return int(time.time() * 1000)


def cache_key(section: str) -> str:
    return f"{KEY_PREFIX}{section}"


class LocalStorage:
    """String key/value store with one file per key under ``root``.

    Reads and writes raise OSError on storage faults; callers decide how to degrade.
    """

    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    def _path(self, key: str) -> Path:
        return self.root / f"{_UNSAFE_KEY_CHARS.sub('_', key)}.json"

    def get_item(self, key: str) -> str | None:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def set_item(self, key: str, value: str) -> None:
        self.root.mkdir(parents=True, exist_ok=True)
        path = self._path(key)
        tmp = path.with_suffix(".tmp")
        tmp.write_text(value, encoding="utf-8")
        tmp.replace(path)


class CacheStore:
    def __init__(
        self,
        storage: LocalStorage,
        duration_ms: int = CACHE_DURATION_MS,
        clock=now_ms,
    ) -> None:
        self.storage = storage
        self.duration_ms = duration_ms
        self.clock = clock

    def get(self, section: str) -> CacheEntry | None:
        """Return the section's entry if present and no older than the cache duration."""
        entry = self.get_stale(section)
        if entry is None:
            return None
        if self.clock() - entry.timestamp > self.duration_ms:
            return None
        return entry

    def get_stale(self, section: str) -> CacheEntry | None:
        """Return the section's entry regardless of its age."""
        try:
            raw = self.storage.get_item(cache_key(section))
            if raw is None:
                return None
            data = json.loads(raw)
            return CacheEntry(
                timestamp=int(data["timestamp"]),
                items=[item_from_dict(it) for it in data["items"]],
            )
        except (OSError, ValueError, KeyError, TypeError) as exc:
            logger.debug("Ignoring unreadable cache for %s: %s", section, exc)
            return None

    def set(self, section: str, items: list) -> None:
        """Overwrite the section's entry. Write failures are ignored."""
        payload = {
            "timestamp": self.clock(),
            "items": [item_to_dict(it) for it in items],
        }
        try:
            self.storage.set_item(cache_key(section), json.dumps(payload, ensure_ascii=False))
        except (OSError, TypeError, ValueError) as exc:
            logger.debug("Could not cache %s: %s", section, exc)

    def is_fresh(self, section: str) -> bool:
        return self.get(section) is not None

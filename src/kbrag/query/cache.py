"""Bounded in-process cache of recent query answers."""

import hashlib
import json
import logging
import threading
import time
from collections import OrderedDict
from typing import Any

logger = logging.getLogger(__name__)


def make_cache_key(question: str, options: dict[str, Any]) -> str:
    """SHA-256 over the stripped question and the sorted option map."""
    payload = json.dumps(
        {"question": question.strip(), "options": options}, sort_keys=True, ensure_ascii=False, default=str
    )
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


class QueryCache:
    """LRU cache whose entries also expire after a fixed TTL.

    Args:
        ttl_seconds: Entry lifetime; 0 disables caching
        max_entries: Capacity; the least recently used entry is evicted first
        clock: Monotonic time source
    """

    def __init__(self, ttl_seconds: int = 300, max_entries: int = 256, clock=time.monotonic) -> None:
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._entries: OrderedDict[str, tuple[float, Any]] = OrderedDict()
        self._lock = threading.Lock()

    @property
    def enabled(self) -> bool:
        return self.ttl_seconds > 0 and self.max_entries > 0

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: str) -> Any | None:
        if not self.enabled:
            return None
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            stored_at, value = entry
            if self._clock() - stored_at > self.ttl_seconds:
                del self._entries[key]
                return None
            self._entries.move_to_end(key)
            return value

    def set(self, key: str, value: Any) -> None:
        if not self.enabled:
            return
        with self._lock:
            self._entries[key] = (self._clock(), value)
            self._entries.move_to_end(key)
            while len(self._entries) > self.max_entries:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug(f"Evicted cached answer {evicted[:12]}")

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

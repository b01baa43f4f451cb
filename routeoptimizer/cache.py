"""Thread-safe in-memory quote cache and rate limiter."""

from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass
from hashlib import sha256
import json
import threading
import time
from typing import Any, Callable


Clock = Callable[[], float]
Sleeper = Callable[[float], None]


@dataclass
class _CacheItem:
    value: Any
    expires_at: float


@dataclass
class CacheStats:
    hits: int = 0
    misses: int = 0


class MemoryCache:
    """LRU + TTL cache shared by pricing worker threads."""

    def __init__(self, max_size: int = 512, clock: Clock | None = None) -> None:
        if max_size <= 0:
            raise ValueError("max_size must be > 0")
        self.max_size = max_size
        self.stats = CacheStats()
        self._clock = clock or time.monotonic
        self._items: OrderedDict[str, _CacheItem] = OrderedDict()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            item = self._items.get(key)
            if item is None or item.expires_at <= self._clock():
                self._items.pop(key, None)
                self.stats.misses += 1
                return default
            self._items.move_to_end(key)
            self.stats.hits += 1
            return item.value

    def set(self, key: str, value: Any, ttl_seconds: float) -> None:
        with self._lock:
            self._items.pop(key, None)
            if ttl_seconds <= 0:
                return
            self._items[key] = _CacheItem(value=value, expires_at=self._clock() + ttl_seconds)
            while len(self._items) > self.max_size:
                self._items.popitem(last=False)


class RateLimiter:
    """Token bucket limiting how often the live pricing provider is called."""

    def __init__(self, rate_per_second: float, capacity: float, clock: Clock | None = None) -> None:
        if rate_per_second <= 0:
            raise ValueError("rate_per_second must be > 0")
        if capacity <= 0:
            raise ValueError("capacity must be > 0")
        self.rate_per_second = rate_per_second
        self.capacity = capacity
        self._clock = clock or time.monotonic
        self._tokens = capacity
        self._last_refill = self._clock()
        self._lock = threading.Lock()

    def allow(self, tokens: float = 1.0) -> bool:
        if tokens <= 0:
            raise ValueError("tokens must be > 0")
        with self._lock:
            self._refill()
            if self._tokens >= tokens:
                self._tokens -= tokens
                return True
            return False

    def wait_time(self, tokens: float = 1.0) -> float:
        if tokens <= 0:
            raise ValueError("tokens must be > 0")
        with self._lock:
            self._refill()
            if self._tokens >= tokens:
                return 0.0
            return (tokens - self._tokens) / self.rate_per_second

    def acquire(
        self,
        tokens: float = 1.0,
        *,
        max_wait_seconds: float = 0.0,
        sleep_fn: Sleeper = time.sleep,
    ) -> bool:
        """Take tokens, sleeping up to ``max_wait_seconds`` for a refill."""
        if self.allow(tokens):
            return True
        wait_seconds = self.wait_time(tokens)
        if wait_seconds > max_wait_seconds:
            return False
        sleep_fn(wait_seconds)
        return self.allow(tokens)

    def _refill(self) -> None:
        now = self._clock()
        elapsed = max(0.0, now - self._last_refill)
        self._last_refill = now
        self._tokens = min(self.capacity, self._tokens + elapsed * self.rate_per_second)


def normalize_text(value: str) -> str:
    return " ".join(value.strip().lower().split())


def stable_json_hash(payload: Any) -> str:
    serialized = json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=True, default=str)
    return sha256(serialized.encode("utf-8")).hexdigest()[:16]


def _key_part(part: Any) -> str:
    if part is None:
        return "none"
    if isinstance(part, str):
        return normalize_text(part)
    if isinstance(part, float):
        return format(round(part, 6), "g")
    if isinstance(part, (list, tuple, dict)):
        return stable_json_hash(part)
    return str(part)


def make_cache_key(prefix: str, *parts: Any) -> str:
    """Build a namespaced key such as ``flight-quote:vie:muc:2026-06-01``."""
    return ":".join([normalize_text(prefix)] + [_key_part(part) for part in parts])

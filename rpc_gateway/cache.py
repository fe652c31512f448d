"""Response cache with per-entry TTL for the cache-aside RPC path."""

import asyncio
import hashlib
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

import orjson
import structlog

from rpc_gateway.errors import InvalidRpcRequestError

logger = structlog.get_logger(__name__)

DEFAULT_TTL_SECONDS = 60


def make_cache_key(method: str, params: List[Any]) -> str:
    """Generate a deterministic cache key from a method and its params.

    Returns:
        "<method>:<sha256 of canonical JSON params>"

    Raises:
        InvalidRpcRequestError: params are not serializable, including
            integers outside the 64-bit range orjson encodes
    """
    try:
        content = orjson.dumps(params, option=orjson.OPT_SORT_KEYS)
    except (TypeError, orjson.JSONEncodeError) as e:
        raise InvalidRpcRequestError(f"params for {method} are not JSON serializable: {e}") from e
    return f"{method}:{hashlib.sha256(content).hexdigest()}"


@dataclass
class CacheEntry:
    value: Any
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


class ResponseCache:
    """
    In-memory TTL cache.

    Expired entries are dropped when read. When sweep_interval_seconds is
    set, start() also runs a background task that removes them in bulk.
    When max_entries is set, the least recently used entry is evicted to
    make room.
    """

    def __init__(
        self,
        default_ttl_seconds: float = DEFAULT_TTL_SECONDS,
        max_entries: int = 0,
        sweep_interval_seconds: float = 0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.default_ttl_seconds = default_ttl_seconds
        self.max_entries = max_entries
        self.sweep_interval_seconds = sweep_interval_seconds
        self._clock = clock

        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._sweep_task: Optional[asyncio.Task] = None

        self.hits = 0
        self.misses = 0
        self.evictions = 0
        self.expirations = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        entry = self._entries.get(key)
        return entry is not None and not entry.is_expired(self._clock())

    def get(self, key: str, default: Any = None) -> Any:
        """Get value from cache.

        Args:
            key: Cache key
            default: Returned when the key is absent or expired

        Returns:
            Cached value or default
        """
        entry = self._entries.get(key)
        if entry is None:
            self.misses += 1
            return default

        if entry.is_expired(self._clock()):
            del self._entries[key]
            self.expirations += 1
            self.misses += 1
            return default

        self._entries.move_to_end(key)
        self.hits += 1
        return entry.value

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        """Store value under key.

        Args:
            key: Cache key
            value: Value to cache
            ttl: Time to live in seconds; None or 0 uses the default
        """
        ttl = ttl or self.default_ttl_seconds
        if ttl < 0:
            raise ValueError("ttl must be >= 0")

        if key in self._entries:
            del self._entries[key]
        elif self.max_entries and len(self._entries) >= self.max_entries:
            self._evict_one()

        self._entries[key] = CacheEntry(value=value, expires_at=self._clock() + ttl)

    def delete(self, key: str) -> bool:
        """Remove key. Returns True if it was present."""
        return self._entries.pop(key, None) is not None

    def flush(self) -> None:
        """Remove every entry."""
        self._entries.clear()

    def purge_expired(self) -> int:
        """Remove all expired entries and return how many were dropped."""
        now = self._clock()
        expired = [k for k, e in self._entries.items() if e.is_expired(now)]
        for key in expired:
            del self._entries[key]
        self.expirations += len(expired)
        return len(expired)

    def _evict_one(self) -> None:
        # Expired entries go first, then the least recently used one.
        if self.purge_expired():
            return
        self._entries.popitem(last=False)
        self.evictions += 1

    async def start(self) -> None:
        """Start the background sweep if configured."""
        if self.sweep_interval_seconds and self._sweep_task is None:
            self._sweep_task = asyncio.create_task(self._sweep_loop())

    async def close(self) -> None:
        if self._sweep_task:
            self._sweep_task.cancel()
            try:
                await self._sweep_task
            except asyncio.CancelledError:
                pass
            self._sweep_task = None

    async def _sweep_loop(self) -> None:
        logger.debug("cache_sweep_started", interval=self.sweep_interval_seconds)
        while True:
            await asyncio.sleep(self.sweep_interval_seconds)
            removed = self.purge_expired()
            if removed:
                logger.debug("cache_sweep_removed", removed=removed, size=len(self._entries))

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        lookups = self.hits + self.misses
        return {
            'size': len(self._entries),
            'hits': self.hits,
            'misses': self.misses,
            'hit_rate': round(self.hits / lookups, 3) if lookups else 0.0,
            'evictions': self.evictions,
            'expirations': self.expirations,
        }

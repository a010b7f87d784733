"""
MediaFlow Cache Layer — Request-scoped permission cache and Redis-backed transients.

RequestCache:
    In-memory memo of permission decisions for one logical request. Owned by the
    AccessResolver, created fresh per request scope, never shared across requests.

RedisCache:
    TTL transients (review count). Falls back to "always miss" on Redis failure
    (circuit breaker), so callers recompute instead of failing.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, Hashable, Optional, TypeVar

logger = logging.getLogger("mediaflow.engine.cache")

T = TypeVar("T")


class RequestCache:
    """
    Request-scoped key/value memo.

    Keys are tuples such as ``(folder_id, action, principal_id)``.
    Stores ``False`` as a real value, so ``get`` distinguishes a cached deny from a miss.
    """

    def __init__(self):
        self._entries: Dict[Hashable, Any] = {}
        self.hits = 0
        self.misses = 0

    def get(self, key: Hashable) -> Optional[Any]:
        """Return the cached value, or None on miss."""
        if key in self._entries:
            self.hits += 1
            return self._entries[key]
        self.misses += 1
        return None

    def set(self, key: Hashable, value: Any) -> None:
        self._entries[key] = value

    def clear(self) -> None:
        if self._entries:
            logger.debug(f"Request cache cleared ({len(self._entries)} entries)")
        self._entries.clear()

    def __contains__(self, key: Hashable) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)


class CircuitBreaker:
    """
    Opens after ``threshold`` failures inside ``window`` seconds.
    Once ``window`` has passed since opening, the next call may try to reconnect.
    """

    def __init__(self, threshold: int = 5, window: float = 30.0):
        self.threshold = threshold
        self.window = window
        self.failures = 0
        self.opened_at: Optional[float] = None
        self._first_failure = 0.0

    @property
    def is_open(self) -> bool:
        return self.opened_at is not None

    def can_retry(self, now: Optional[float] = None) -> bool:
        now = time.time() if now is None else now
        return self.opened_at is not None and now - self.opened_at > self.window

    def record_failure(self, now: Optional[float] = None) -> bool:
        """Count a failure. Returns True when this failure opened the circuit."""
        now = time.time() if now is None else now
        if self.failures == 0 or now - self._first_failure > self.window:
            self.failures = 0
            self._first_failure = now
        self.failures += 1
        if self.opened_at is None and self.failures >= self.threshold:
            self.opened_at = now
            return True
        return False

    def reopen(self, now: Optional[float] = None) -> None:
        """Restart the wait after a failed reconnect."""
        self.opened_at = time.time() if now is None else now

    def reset(self) -> None:
        self.failures = 0
        self.opened_at = None


class RedisCache:
    """
    Prefixed TTL transients in one Redis DB.

    Every operation degrades to a miss (None / False) when Redis is
    unreachable or the circuit is open; callers recompute instead of failing.
    """

    def __init__(
        self,
        redis_url: str = "redis://localhost:6379/0",
        prefix: str = "mediaflow:",
        default_ttl: int = 3600,
        db: int = 0,
        breaker: Optional[CircuitBreaker] = None,
    ):
        self._redis_url = redis_url
        self._prefix = prefix
        self._default_ttl = default_ttl
        self._db = db
        self._client = None
        self._breaker = breaker or CircuitBreaker()

    @property
    def connected(self) -> bool:
        return self._client is not None

    @property
    def breaker(self) -> CircuitBreaker:
        return self._breaker

    def connect(self) -> bool:
        """Open the client and verify it with PING. False leaves the cache in miss-only mode."""
        try:
            import redis
            client = redis.Redis.from_url(
                self._redis_url,
                db=self._db,
                decode_responses=True,
                socket_timeout=5,
                socket_connect_timeout=5,
            )
            client.ping()
        except Exception as e:
            logger.warning(f"Transient cache unavailable (DB {self._db}): {e}")
            self._client = None
            return False

        self._client = client
        self._breaker.reset()
        logger.info(f"Transient cache connected: DB {self._db} ({self._prefix})")
        return True

    def _key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    def _run(self, op: str, call: Callable[[Any], T], default: T) -> T:
        """Run ``call(client)`` behind the breaker. Failures are counted and return ``default``."""
        if self._breaker.is_open:
            if not self._breaker.can_retry():
                return default
            if not self.connect():
                self._breaker.reopen()
                return default
        if self._client is None:
            return default
        try:
            return call(self._client)
        except Exception as e:
            if self._breaker.record_failure():
                logger.error(
                    f"Transient cache circuit open after {self._breaker.failures} failures: {e}"
                )
            else:
                logger.debug(f"Redis {op} failed: {e}")
            return default

    def get(self, key: str) -> Optional[str]:
        return self._run("GET", lambda c: c.get(self._key(key)), None)

    def get_int(self, key: str) -> Optional[int]:
        """Integer transient; a malformed stored value counts as a miss."""
        raw = self.get(key)
        if raw is None:
            return None
        try:
            return int(raw)
        except (TypeError, ValueError):
            logger.debug(f"Discarding malformed transient {key!r}: {raw!r}")
            return None

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        def _set(client) -> bool:
            client.set(self._key(key), str(value), ex=ttl or self._default_ttl)
            return True
        return self._run("SET", _set, False)

    def delete(self, key: str) -> bool:
        def _delete(client) -> bool:
            client.delete(self._key(key))
            return True
        return self._run("DELETE", _delete, False)

    def close(self) -> None:
        """Close the client. Later calls are misses until connect() succeeds."""
        client, self._client = self._client, None
        self._breaker.reset()
        if client is not None:
            try:
                client.close()
            except Exception as e:
                logger.debug(f"Redis close failed: {e}")


def create_transient_cache(redis_url: str, db: int = 3, prefix: str = "mediaflow:", ttl: int = 3600) -> RedisCache:
    """Build the review-count transient cache and try to connect it."""
    cache = RedisCache(redis_url=redis_url, prefix=prefix, default_ttl=ttl, db=db)
    cache.connect()
    return cache

"""Sliding-window rate limiting for AI calls.

``check`` is check-and-increment in one step: an admitted call is counted
immediately, a rejected call is not counted at all.

Two backends implement the same interface:

- ``InMemoryRateLimiter``: process-local; state is lost on restart and not
  shared between API workers.
- ``RedisRateLimiter``: one sorted set per key in Redis, shared by every
  process pointing at the same Redis.
"""

import threading
import time
from abc import ABC, abstractmethod
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
from functools import lru_cache
from uuid import uuid4

from scene_studio.config import settings
from scene_studio.domain.errors import RateLimitedError
from scene_studio.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class RatePolicy:
    """A named limit applied per user."""

    action: str
    limit: int
    window_seconds: int
    message: str

    def key_for(self, user_id: str) -> str:
        return f"{user_id}:{self.action}"


SCENE_GENERATION_POLICY = RatePolicy(
    action="generate",
    limit=settings.scene_generation_limit_per_hour,
    window_seconds=settings.rate_limit_window_seconds,
    message="Too many AI scene generations. Try again later.",
)

SCENE_REGENERATION_POLICY = RatePolicy(
    action="regenerate",
    limit=settings.scene_regeneration_limit_per_hour,
    window_seconds=settings.rate_limit_window_seconds,
    message="Too many scene regenerations. Try again later.",
)


class RateLimiter(ABC):
    """Per-key sliding-window admission control."""

    @abstractmethod
    def check(
        self,
        key: str,
        limit: int,
        window_seconds: float,
        message: str = "Rate limit exceeded",
    ) -> None:
        """Admit one call for ``key`` or raise.

        Args:
            key: Bucket identifier, e.g. "{user_id}:{action}"
            limit: Calls allowed inside the trailing window
            window_seconds: Window length
            message: Error message used on rejection

        Raises:
            RateLimitedError: If ``limit`` calls already happened in the window
        """
        ...

    def enforce(self, policy: RatePolicy, user_id: str) -> None:
        """Apply a named policy for a user."""
        self.check(policy.key_for(user_id), policy.limit, policy.window_seconds, policy.message)


class InMemoryRateLimiter(RateLimiter):
    """Process-local limiter keeping a deque of admission times per key."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._buckets: dict[str, deque[float]] = {}
        self._lock = threading.Lock()

    def check(
        self,
        key: str,
        limit: int,
        window_seconds: float,
        message: str = "Rate limit exceeded",
    ) -> None:
        with self._lock:
            now = self._clock()
            bucket = self._buckets.setdefault(key, deque())
            while bucket and now - bucket[0] >= window_seconds:
                bucket.popleft()

            if len(bucket) >= limit:
                retry_after = int(window_seconds - (now - bucket[0])) + 1
                logger.warning("rate_limit_rejected", key=key, limit=limit, backend="memory")
                raise RateLimitedError(message, retry_after_seconds=retry_after)

            bucket.append(now)

    def reset(self) -> None:
        """Forget every bucket."""
        with self._lock:
            self._buckets.clear()


class RedisRateLimiter(RateLimiter):
    """Limiter shared across processes via Redis sorted sets.

    Each admission is a member scored by its timestamp; the window is pruned
    with ZREMRANGEBYSCORE before counting. Pruning, counting and adding run in
    a Lua script so concurrent callers cannot both take the last slot.
    """

    _SCRIPT = """
    local key = KEYS[1]
    local now = tonumber(ARGV[1])
    local window = tonumber(ARGV[2])
    local limit = tonumber(ARGV[3])
    redis.call('ZREMRANGEBYSCORE', key, '-inf', now - window)
    local count = redis.call('ZCARD', key)
    if count >= limit then
        local oldest = redis.call('ZRANGE', key, 0, 0, 'WITHSCORES')
        return {0, tostring(oldest[2])}
    end
    redis.call('ZADD', key, now, ARGV[4])
    redis.call('EXPIRE', key, math.ceil(window))
    return {1, ''}
    """

    def __init__(self, client: object | None = None, prefix: str = "scene_studio:ratelimit:") -> None:
        if client is None:
            import redis

            client = redis.from_url(settings.redis_url)
        self._client = client
        self._prefix = prefix
        self._script = client.register_script(self._SCRIPT)  # type: ignore[attr-defined]

    def check(
        self,
        key: str,
        limit: int,
        window_seconds: float,
        message: str = "Rate limit exceeded",
    ) -> None:
        now = time.time()
        admitted, oldest = self._script(
            keys=[f"{self._prefix}{key}"],
            args=[now, window_seconds, limit, f"{now}:{uuid4().hex}"],
        )
        if int(admitted) == 1:
            return

        oldest_value = oldest.decode() if isinstance(oldest, bytes) else oldest
        retry_after = max(1, int(window_seconds - (now - float(oldest_value or now))) + 1)
        logger.warning("rate_limit_rejected", key=key, limit=limit, backend="redis")
        raise RateLimitedError(message, retry_after_seconds=retry_after)


@lru_cache
def get_rate_limiter() -> RateLimiter:
    """Get the process-wide limiter for the configured backend."""
    if settings.rate_limit_backend == "redis":
        return RedisRateLimiter()
    return InMemoryRateLimiter()

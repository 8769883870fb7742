"""Redis-backed failed login throttle shared across service replicas."""

from __future__ import annotations

import time

from redis import Redis


class RedisFailedLoginThrottle:
    """Distributed failed-login window implemented with Redis sorted sets.

    Each failure is a sorted set member scored by its timestamp in milliseconds;
    members older than the window are trimmed before counting.
    """

    def __init__(
        self,
        client: Redis,
        *,
        max_failures: int,
        window_seconds: int,
        key_prefix: str = "login-failures",
    ) -> None:
        """Store the Redis client and window configuration."""
        self._client = client
        self._max_failures = max_failures
        self._window_ms = window_seconds * 1000
        self._key_prefix = key_prefix

    def is_blocked(self, key: str) -> bool:
        """Return ``True`` when ``key`` has used up its failure allowance."""
        now_ms = int(time.time() * 1000)
        redis_key = self._redis_key(key)
        pipe = self._client.pipeline()
        pipe.zremrangebyscore(redis_key, 0, now_ms - self._window_ms)
        pipe.zcard(redis_key)
        _, current = pipe.execute()
        return int(current) >= self._max_failures

    def record_failure(self, key: str) -> None:
        now_ms = int(time.time() * 1000)
        redis_key = self._redis_key(key)
        seq = self._client.incr(f"{redis_key}:seq")
        pipe = self._client.pipeline()
        pipe.zadd(redis_key, {f"{now_ms}:{seq}": now_ms})
        pipe.pexpire(redis_key, self._window_ms)
        pipe.pexpire(f"{redis_key}:seq", self._window_ms)
        pipe.execute()

    def reset(self, key: str) -> None:
        redis_key = self._redis_key(key)
        self._client.delete(redis_key, f"{redis_key}:seq")

    def _redis_key(self, key: str) -> str:
        return f"{self._key_prefix}:{key}"

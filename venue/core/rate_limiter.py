import logging
import threading
import time
from abc import ABC, abstractmethod
from collections import defaultdict, deque
from datetime import date
from enum import Enum
from uuid import uuid4

import redis
from fastapi import HTTPException, Request, status

from venue.core.config import settings

logger = logging.getLogger(__name__)


class RateLimiter(ABC):
    """Sliding-window limiter: ``allow`` returns (allowed, retry_after_seconds)."""

    @abstractmethod
    def allow(self, key: str, limit: int, window_seconds: int) -> tuple[bool, int]:
        raise NotImplementedError

    @abstractmethod
    def reset(self) -> None:
        raise NotImplementedError


class InMemoryRateLimiter(RateLimiter):
    def __init__(self) -> None:
        self._hits: dict[str, deque[float]] = defaultdict(deque)
        self._lock = threading.Lock()

    def allow(self, key: str, limit: int, window_seconds: int) -> tuple[bool, int]:
        now = time.monotonic()
        cutoff = now - window_seconds
        with self._lock:
            hits = self._hits[key]
            while hits and hits[0] <= cutoff:
                hits.popleft()
            if len(hits) >= limit:
                return False, max(1, int(hits[0] + window_seconds - now))
            hits.append(now)
            return True, 0

    def reset(self) -> None:
        with self._lock:
            self._hits.clear()


class RedisRateLimiter(RateLimiter):
    def __init__(self, redis_url: str, prefix: str = "venue-rl") -> None:
        self._client = redis.Redis.from_url(
            redis_url,
            socket_connect_timeout=0.2,
            socket_timeout=0.2,
        )
        self._prefix = prefix

    def allow(self, key: str, limit: int, window_seconds: int) -> tuple[bool, int]:
        redis_key = f"{self._prefix}:{key}"
        now_ms = int(time.time() * 1000)
        window_ms = window_seconds * 1000

        pipe = self._client.pipeline()
        pipe.zremrangebyscore(redis_key, 0, now_ms - window_ms)
        pipe.zcard(redis_key)
        pipe.zrange(redis_key, 0, 0, withscores=True)
        _, hit_count, oldest = pipe.execute()

        if hit_count >= limit:
            if oldest:
                return False, max(1, int((oldest[0][1] + window_ms - now_ms) / 1000))
            return False, max(1, window_seconds)

        pipe = self._client.pipeline()
        pipe.zadd(redis_key, {f"{now_ms}:{uuid4().hex}": now_ms})
        pipe.expire(redis_key, window_seconds + 5)
        pipe.execute()
        return True, 0

    def reset(self) -> None:
        keys = list(self._client.scan_iter(match=f"{self._prefix}:*"))
        if keys:
            self._client.delete(*keys)


class FallbackRateLimiter(RateLimiter):
    """Uses the primary limiter and degrades to the fallback while the primary is unreachable."""

    def __init__(self, primary: RateLimiter, fallback: RateLimiter) -> None:
        self._primary = primary
        self._fallback = fallback

    def allow(self, key: str, limit: int, window_seconds: int) -> tuple[bool, int]:
        try:
            return self._primary.allow(key=key, limit=limit, window_seconds=window_seconds)
        except redis.RedisError:
            logger.warning("rate_limiter_degraded key=%s backend=memory", key)
            return self._fallback.allow(key=key, limit=limit, window_seconds=window_seconds)

    def reset(self) -> None:
        try:
            self._primary.reset()
        except redis.RedisError:
            logger.warning("rate_limiter_reset_failed backend=redis")
        self._fallback.reset()


def _build_rate_limiter() -> RateLimiter:
    backend = settings.rate_limit_backend.strip().lower()
    if backend == "redis":
        return FallbackRateLimiter(
            primary=RedisRateLimiter(redis_url=settings.rate_limit_redis_url),
            fallback=InMemoryRateLimiter(),
        )
    return InMemoryRateLimiter()


rate_limiter: RateLimiter = _build_rate_limiter()


class LimitedAction(str, Enum):
    """Throttled operations. Limits are read from settings on every call."""

    REGISTER = "register"
    LOGIN = "login"
    RESERVATION_CREATE = "reservation"
    RESERVATION_SLOT = "reservation-slot"
    POKER_JOIN = "poker-join"

    @property
    def limit(self) -> int:
        return getattr(settings, ACTION_LIMIT_SETTINGS[self])


ACTION_LIMIT_SETTINGS = {
    LimitedAction.REGISTER: "auth_register_max_attempts",
    LimitedAction.LOGIN: "auth_login_max_attempts",
    LimitedAction.RESERVATION_CREATE: "reservation_create_max_attempts",
    LimitedAction.RESERVATION_SLOT: "reservation_slot_max_attempts",
    LimitedAction.POKER_JOIN: "poker_join_max_attempts",
}


def client_identity(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def slot_identity(user_id: int, day: date, start_time: str, room_type: str) -> str:
    # one member retrying the same slot, independent of their other bookings
    return f"{user_id}:{day.isoformat()}:{start_time}:{room_type}"


def enforce_rate_limit(action: LimitedAction, identity: str | int) -> None:
    key = f"{action.value}:{identity}"
    allowed, retry_after = rate_limiter.allow(
        key=key,
        limit=action.limit,
        window_seconds=settings.rate_limit_window_seconds,
    )
    if not allowed:
        logger.info("rate_limited action=%s key=%s retry_after=%s", action.value, key, retry_after)
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many requests. Please try again later.",
            headers={"Retry-After": str(retry_after)},
        )

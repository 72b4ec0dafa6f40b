from __future__ import annotations

import hashlib
import threading
import time
from collections import deque
from typing import Protocol

import redis
from fastapi import Depends, HTTPException, Request

from webhook_gateway.config import settings
from webhook_gateway.redis_client import redis_client

class RateLimiter(Protocol):
    def hit(self, key: str, limit: int, window_seconds: int) -> bool:
        """Count one request for `key`; True when it is over the limit."""
        ...

# fixed-window limiter using redis INCR + EXPIRE, shared across processes
class RedisRateLimiter:
    def __init__(self, client: redis.Redis) -> None:
        self.client = client

    def hit(self, key: str, limit: int, window_seconds: int) -> bool:
        try:
            pipe = self.client.pipeline()
            pipe.incr(key)
            pipe.expire(key, window_seconds, nx=True)
            count, _ = pipe.execute()
        except redis.RedisError:
            # fail-open if redis is down
            return False
        return int(count) > int(limit)

# sliding-window limiter for single-process deployments
class InMemoryRateLimiter:
    def __init__(self, max_keys: int = 10_000) -> None:
        self.max_keys = max_keys
        self._hits: dict[str, deque[float]] = {}
        self._lock = threading.Lock()

    def hit(self, key: str, limit: int, window_seconds: int) -> bool:
        now = time.monotonic()
        cutoff = now - window_seconds
        with self._lock:
            hits = self._hits.get(key)
            if hits is None:
                if len(self._hits) >= self.max_keys:
                    self._evict(cutoff)
                hits = self._hits[key] = deque()
            while hits and hits[0] <= cutoff:
                hits.popleft()
            if len(hits) >= limit:
                return True
            hits.append(now)
            return False

    def _evict(self, cutoff: float) -> None:
        # drop idle keys first, then the oldest if still full
        for k in [k for k, h in self._hits.items() if not h or h[-1] <= cutoff]:
            del self._hits[k]
        while len(self._hits) >= self.max_keys:
            del self._hits[next(iter(self._hits))]

    def clear(self) -> None:
        with self._lock:
            self._hits.clear()

memory_limiter = InMemoryRateLimiter()

def get_rate_limiter() -> RateLimiter:
    if settings.rate_limit_backend == "memory":
        return memory_limiter
    return RedisRateLimiter(redis_client)

def _hash(s: str) -> str:
    return hashlib.sha256(s.encode("utf-8")).hexdigest()[:24]

def client_ip(request: Request) -> str:
    for header in ("cf-connecting-ip", "x-real-ip"):
        value = request.headers.get(header)
        if value:
            return value.strip()
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return (request.client.host if request.client else "unknown").strip()

def rate_limit(name: str, limit_per_window: int, window_seconds: int):
    def _dep(request: Request, limiter: RateLimiter = Depends(get_rate_limiter)) -> None:
        if not settings.rate_limit_enabled:
            return

        key = f"rl:{name}:{_hash(client_ip(request))}"
        if limiter.hit(key, limit_per_window, window_seconds):
            raise HTTPException(
                status_code=429,
                detail="rate_limited",
                headers={"Retry-After": str(window_seconds)},
            )

    return _dep

# reco_engine/utils/locks.py
from __future__ import annotations
from contextlib import asynccontextmanager
from typing import Dict, Optional
from redis.asyncio import Redis
import uuid, asyncio
import logging

logger = logging.getLogger(__name__)


class LockTimeout(Exception):
    pass


class RedisLock:
    """
    Simple, single-instance lock using SET NX EX.
    Prevents two workers from recomputing the same key at once.
    """
    def __init__(self, redis: Redis, key: str, ttl: int = 60):
        self.redis = redis
        self.key = f"lock:{key}"
        self.ttl = ttl
        self._token: Optional[str] = None

    async def acquire(self) -> bool:
        token = uuid.uuid4().hex
        ok = await self.redis.set(self.key, token, nx=True, ex=self.ttl)
        if ok:
            self._token = token
            return True
        return False

    async def release(self) -> None:
        # only delete our own token; an expired lock may already belong to someone else
        if self._token and await self.redis.get(self.key) == self._token:
            await self.redis.delete(self.key)
        self._token = None

    async def wait(self, timeout: int = 10) -> None:
        """Wait for another worker to release the lock."""
        for _ in range(timeout * 10):
            if not await self.redis.exists(self.key):
                return
            await asyncio.sleep(0.1)

    async def __aenter__(self) -> "RedisLock":
        # lock TTL bounds how long a crashed holder can block us
        for _ in range(self.ttl * 10):
            if await self.acquire():
                return self
            await self.wait(timeout=1)
        raise LockTimeout(self.key)

    async def __aexit__(self, *exc) -> None:
        await self.release()


class KeyedLocks:
    """
    Per-key mutual exclusion. Uses RedisLock when a Redis client is available
    (multiple workers), otherwise one asyncio.Lock per key in this process.
    """
    def __init__(self, redis: Optional[Redis] = None, ttl: int = 60):
        self.redis = redis
        self.ttl = ttl
        self._local: Dict[str, asyncio.Lock] = {}
        self._waiters: Dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, key: str):
        if self.redis is not None:
            async with RedisLock(self.redis, key, ttl=self.ttl):
                yield
            return

        lock = self._local.setdefault(key, asyncio.Lock())
        self._waiters[key] = self._waiters.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._waiters[key] -= 1
            if not self._waiters[key]:
                # nobody else queued on this key
                del self._waiters[key]
                self._local.pop(key, None)

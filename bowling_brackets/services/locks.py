"""
Keyed mutual exclusion for engine operations.

Progression, elimination and bulk seeding read a set of records and then
write based on what they read. Two concurrent calls against the same scope
would both see the same "not yet processed" records, so each scope is
serialized through its own asyncio.Lock. When a Redis client is configured
the same key is also taken in Redis, which serializes engine processes
sharing one store.
"""

import asyncio
import time
import uuid
from contextlib import asynccontextmanager
from typing import Dict, Hashable
import logging

from bowling_brackets.config import Config
from bowling_brackets.utils.exceptions import LockUnavailableError
from bowling_brackets.utils.redis_utils import create_redis_client

logger = logging.getLogger(__name__)

# Delete the key only while it still holds our token
RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
end
return 0
"""

class KeyedLockRegistry:
    """Registry handing out one lock per scope key.
    
    The asyncio lock serializes callers inside this process. The Redis lock
    (SET NX EX with a per-holder token) serializes processes; it expires
    after ``lock_ttl`` seconds so a crashed holder cannot block a scope forever.
    """
    
    POLL_INTERVAL = 0.05  # seconds between Redis acquire attempts
    
    def __init__(self, redis_url: str = None, redis_client=None,
                 lock_ttl: int = None, wait_timeout: float = None):
        self._locks: Dict[tuple, asyncio.Lock] = {}
        self._users: Dict[tuple, int] = {}
        self.redis_url = redis_url
        self.redis_client = redis_client
        self._redis_checked = redis_client is not None
        self.lock_ttl = lock_ttl if lock_ttl is not None else Config.LOCK_TTL
        self.wait_timeout = wait_timeout if wait_timeout is not None else Config.LOCK_WAIT_TIMEOUT
    
    def __len__(self) -> int:
        return len(self._locks)
    
    async def _get_redis_client(self):
        if not self._redis_checked:
            self._redis_checked = True
            if self.redis_url:
                self.redis_client = await create_redis_client(self.redis_url)
        return self.redis_client
    
    @staticmethod
    def redis_key(key: tuple) -> str:
        return "bracket_lock:" + ":".join(str(part) for part in key)
    
    @asynccontextmanager
    async def hold(self, *key: Hashable):
        """Hold the lock for the given scope key for the duration of the block."""
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1
        try:
            if lock.locked():
                logger.debug(f"Waiting for lock {key}")
            async with lock:
                async with self._hold_distributed(key):
                    yield
        finally:
            self._users[key] -= 1
            if not self._users[key]:
                # Nobody holds or waits for this key any more
                del self._users[key]
                del self._locks[key]
    
    @asynccontextmanager
    async def _hold_distributed(self, key: tuple):
        client = await self._get_redis_client()
        if client is None:
            yield
            return
        
        name = self.redis_key(key)
        token = uuid.uuid4().hex
        deadline = time.monotonic() + self.wait_timeout
        while not await client.set(name, token, ex=self.lock_ttl, nx=True):
            if time.monotonic() >= deadline:
                logger.warning(f"Lock {name} still held elsewhere after {self.wait_timeout}s")
                raise LockUnavailableError(name, self.wait_timeout)
            await asyncio.sleep(self.POLL_INTERVAL)
        
        try:
            yield
        finally:
            await client.eval(RELEASE_SCRIPT, 1, name, token)
    
    def is_locked(self, *key: Hashable) -> bool:
        lock = self._locks.get(key)
        return lock is not None and lock.locked()
    
    async def close(self):
        if self.redis_client is not None:
            await self.redis_client.aclose()
            self.redis_client = None

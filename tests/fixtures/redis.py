"""
Redis-specific test fixtures and utilities
"""

import time
from typing import Any, Dict, Optional


class MockRedisClient:
    """In-memory stand-in for the few Redis commands the API uses."""
    
    def __init__(self):
        self._data: Dict[str, Any] = {}
        self._expires_at: Dict[str, float] = {}
    
    def _purge(self, key: str):
        expires_at = self._expires_at.get(key)
        if expires_at is not None and expires_at <= time.monotonic():
            self._data.pop(key, None)
            self._expires_at.pop(key, None)
    
    async def get(self, key: str) -> Optional[Any]:
        self._purge(key)
        return self._data.get(key)
    
    async def set(self, key: str, value: Any, ex: Optional[int] = None, nx: bool = False) -> Optional[bool]:
        self._purge(key)
        if nx and key in self._data:
            return None
        self._data[key] = value
        if ex:
            self._expires_at[key] = time.monotonic() + ex
        return True
    
    async def exists(self, key: str) -> int:
        self._purge(key)
        return 1 if key in self._data else 0
    
    async def delete(self, key: str) -> int:
        self._expires_at.pop(key, None)
        return 1 if self._data.pop(key, None) is not None else 0
    
    async def incr(self, key: str) -> int:
        self._purge(key)
        self._data[key] = int(self._data.get(key, 0)) + 1
        return self._data[key]
    
    async def expire(self, key: str, seconds: int) -> bool:
        if key not in self._data:
            return False
        self._expires_at[key] = time.monotonic() + seconds
        return True
    
    async def ttl(self, key: str) -> int:
        self._purge(key)
        if key not in self._data:
            return -2
        expires_at = self._expires_at.get(key)
        if expires_at is None:
            return -1
        return int(expires_at - time.monotonic())
    
    def pipeline(self):
        return MockPipeline(self)
    
    def keys(self):
        return list(self._data.keys())


class MockPipeline:
    """Queues commands and runs them on `execute`, like redis-py's async pipeline."""
    
    def __init__(self, client: MockRedisClient):
        self._client = client
        self._commands = []
    
    def incr(self, key: str):
        self._commands.append((self._client.incr, (key,)))
        return self
    
    def expire(self, key: str, seconds: int):
        self._commands.append((self._client.expire, (key, seconds)))
        return self
    
    async def execute(self):
        results = [await command(*args) for command, args in self._commands]
        self._commands = []
        return results


class FailingRedisClient:
    """Redis client whose every command fails, as when Redis is down."""
    
    async def set(self, *args, **kwargs):
        raise ConnectionError("Redis unavailable")
    
    async def get(self, *args, **kwargs):
        raise ConnectionError("Redis unavailable")
    
    async def exists(self, *args, **kwargs):
        raise ConnectionError("Redis unavailable")

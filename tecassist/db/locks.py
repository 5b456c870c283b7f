"""Per-key async locks for document writes and per-user turn appends."""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager


class KeyedLocks:
    """Registry of asyncio locks keyed by document or user id.

    Writers on the same key are serialized; different keys never contend,
    so no global lock is taken across documents or users.
    """

    def __init__(self) -> None:
        self._by_key: dict[str, asyncio.Lock] = {}
        self._waiters: dict[str, int] = {}

    def get_or_create(self, key: str) -> asyncio.Lock:
        """Get existing lock for key or create a new one."""
        if key not in self._by_key:
            self._by_key[key] = asyncio.Lock()
        return self._by_key[key]

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        """Hold the lock for key; drops the entry once nobody is waiting."""
        lock = self.get_or_create(key)
        self._waiters[key] = self._waiters.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._waiters[key] -= 1
            if self._waiters[key] == 0:
                del self._waiters[key]
                self._by_key.pop(key, None)

    def __len__(self) -> int:
        return len(self._by_key)

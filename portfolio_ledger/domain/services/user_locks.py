"""
Per-user mutual exclusion for order execution.

One asyncio.Lock per user id; the lock is dropped once no task holds or
waits for it, so the registry only grows with concurrently active users.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict


class UserLockRegistry:
    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}
        self._claims: Dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, user_id: str) -> AsyncIterator[None]:
        lock = self._locks.get(user_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[user_id] = lock
        self._claims[user_id] = self._claims.get(user_id, 0) + 1

        try:
            async with lock:
                yield
        finally:
            self._claims[user_id] -= 1
            if self._claims[user_id] == 0:
                del self._claims[user_id]
                del self._locks[user_id]

    def is_locked(self, user_id: str) -> bool:
        lock = self._locks.get(user_id)
        return lock is not None and lock.locked()

    def __len__(self) -> int:
        return len(self._locks)

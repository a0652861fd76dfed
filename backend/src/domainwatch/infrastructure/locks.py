"""
Per-record mutual exclusion.

The reconciliation sweep, the reminder dispatch, renewals and user
updates all do read-modify-write on domain records. Holding the lock
for a domain id guarantees at most one writer per record at a time.

A key's lock exists only while someone holds or waits for it, so keys
such as one-off payment ids do not accumulate.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator


class KeyedLocks:
    """One asyncio.Lock per key, created on first use."""

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, key: str, timeout: float | None = None) -> AsyncIterator[None]:
        """
        Hold the lock for a key.

        Args:
            key: Record identity, e.g. a domain id
            timeout: Give up waiting after this many seconds
                (raises asyncio.TimeoutError)

        Usage:
            async with locks.hold(domain_id):
                record = await repo.get_domain(domain_id)
                ...
        """
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._users[key] = self._users.get(key, 0) + 1

        try:
            if timeout is None:
                await lock.acquire()
            else:
                await asyncio.wait_for(lock.acquire(), timeout=timeout)
            try:
                yield
            finally:
                lock.release()
        finally:
            self._users[key] -= 1
            if not self._users[key]:
                del self._users[key]
                del self._locks[key]

    def __len__(self) -> int:
        return len(self._locks)

"""Keyed mutual exclusion within one process.

Every unit that reads and then mutates one market (stake, resolve, auto-resolve,
claim, delete) runs under that market's lock, and every token trade under its
wallet's lock, so two requests in this process never interleave on the same
rows. Cross-process safety still comes from the database guards (row locks
and compare-and-set updates).

An entry lives only while someone holds or waits for it, so the registry stays
as small as the set of keys in use, whatever ids callers send.
"""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager


class KeyedLocks:
    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    @asynccontextmanager
    async def for_key(self, key: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                del self._locks[key]

    def __len__(self) -> int:
        return len(self._locks)


market_locks = KeyedLocks()
wallet_locks = KeyedLocks()

"""
Per-account write serialization.

Every balance writer (charge, credit, manual adjustment) runs its
read-check-write sequence while holding the account's lock. Writers in
other processes are stopped by the conditional balance UPDATE instead.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import Dict


class AccountLockRegistry:
    """
    asyncio.Lock per account id, created on first use.

    An entry lives only while some task holds or waits on it, so the
    registry stays as small as the set of accounts being written.
    """

    def __init__(self):
        self._locks: Dict[int, asyncio.Lock] = {}
        self._users: Dict[int, int] = {}

    @asynccontextmanager
    async def lock_for(self, account_id: int):
        lock = self._locks.get(account_id)
        if lock is None:
            lock = self._locks[account_id] = asyncio.Lock()
        self._users[account_id] = self._users.get(account_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[account_id] -= 1
            if self._users[account_id] == 0:
                del self._users[account_id]
                del self._locks[account_id]

    def __len__(self) -> int:
        return len(self._locks)

    def clear(self) -> None:
        """Drop all locks (locks bind to the event loop that first waits on them)."""
        self._locks.clear()
        self._users.clear()


account_locks = AccountLockRegistry()

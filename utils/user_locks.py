"""
Per-user asyncio locks for serializing entitlement mutations
"""
import asyncio
import weakref


class UserLockRegistry:
    """
    Hands out one asyncio.Lock per user id.

    Locks are weakly held so idle users don't accumulate entries; a lock
    lives as long as some coroutine is holding or waiting on it.
    """

    def __init__(self):
        self._locks: "weakref.WeakValueDictionary[int, asyncio.Lock]" = weakref.WeakValueDictionary()

    def lock_for(self, user_id: int) -> asyncio.Lock:
        lock = self._locks.get(user_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[user_id] = lock
        return lock


user_locks = UserLockRegistry()

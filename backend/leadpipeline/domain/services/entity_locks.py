"""
Entity Locks
Per-card asyncio locks plus a single roster lock
"""
import asyncio
from typing import Dict


class EntityLocks:
    """
    Lock registry for serializing writes.

    Lock order is always card lock first, roster lock second. Nothing
    acquires a card lock while holding the roster lock.
    """

    def __init__(self):
        self._card_locks: Dict[str, asyncio.Lock] = {}
        self._roster_lock = asyncio.Lock()

    def card(self, card_id: str) -> asyncio.Lock:
        """Lock guarding a single card (created on first use)."""
        lock = self._card_locks.get(card_id)
        if lock is None:
            lock = asyncio.Lock()
            self._card_locks[card_id] = lock
        return lock

    @property
    def roster(self) -> asyncio.Lock:
        return self._roster_lock

    def forget(self, card_id: str) -> None:
        """Drop the lock of a closed card if nobody holds it."""
        lock = self._card_locks.get(card_id)
        if lock is not None and not lock.locked():
            del self._card_locks[card_id]

    def __len__(self) -> int:
        return len(self._card_locks)

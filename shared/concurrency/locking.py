"""
Concurrency Control: Keyed Locks

Admission checks read aggregate state (section occupancy, instructors per
section, an instructor's subjects) and then write based on it. Every such
check-then-write runs while holding the locks for the keys it touches, so two
writers on the same (grade, section) or the same instructor are serialized.

Keys are always acquired in sorted order, which rules out lock-order deadlocks
between operations that need several keys.
"""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any
from uuid import UUID

import structlog

logger = structlog.get_logger(__name__)


def instructor_key(instructor_id: UUID) -> str:
    return f"instructor:{instructor_id}"


def grade_key(grade: Any) -> str:
    """Grade-wide key used for Primary tier advisers."""
    return f"grade:{grade}"


def section_staff_key(grade: Any, section: int) -> str:
    """Instructor bindings of one section."""
    return f"section-staff:{grade}:{section}"


def section_roster_key(grade: Any, section: int) -> str:
    """Approved students of one section."""
    return f"section-roster:{grade}:{section}"


def enrollment_key(enrollment_id: UUID) -> str:
    return f"enrollment:{enrollment_id}"


class _KeyLock:
    """An asyncio lock plus the number of tasks holding or waiting for it."""

    def __init__(self):
        self.lock = asyncio.Lock()
        self.users = 0


class KeyedLockManager:
    """
    Manages per-resource locks for a single process.

    Entries are created on demand and dropped when no task uses them anymore.
    """

    def __init__(self):
        """Initialize lock manager."""
        self._locks: dict[str, _KeyLock] = {}
        self._guard = asyncio.Lock()  # Protects _locks dictionary
        logger.info("Lock manager initialized")

    @asynccontextmanager
    async def hold(self, *resource_ids: str) -> AsyncIterator[None]:
        """
        Hold exclusive locks on all given resources for the duration of the block.

        Args:
            resource_ids: Resources to lock (duplicates are ignored)
        """
        keys = sorted(set(resource_ids))
        acquired: list[str] = []

        try:
            for key in keys:
                entry = await self._checkout(key)
                try:
                    await entry.lock.acquire()
                except BaseException:
                    await self._checkin(key)
                    raise
                acquired.append(key)

            logger.debug("Locks acquired", resources=keys)
            yield
        finally:
            for key in reversed(acquired):
                self._locks[key].lock.release()
                await self._checkin(key)
            if acquired:
                logger.debug("Locks released", resources=acquired)

    async def is_locked(self, resource_id: str) -> bool:
        """Check if resource is currently locked."""
        async with self._guard:
            entry = self._locks.get(resource_id)
            return entry is not None and entry.lock.locked()

    async def _checkout(self, key: str) -> _KeyLock:
        async with self._guard:
            entry = self._locks.get(key)
            if entry is None:
                entry = self._locks[key] = _KeyLock()
            entry.users += 1
            return entry

    async def _checkin(self, key: str) -> None:
        async with self._guard:
            entry = self._locks.get(key)
            if entry is None:
                return
            entry.users -= 1
            if entry.users <= 0:
                del self._locks[key]

    def __len__(self) -> int:
        return len(self._locks)


# Global lock manager instance
_lock_manager: KeyedLockManager | None = None


def get_lock_manager() -> KeyedLockManager:
    """
    Get or create global lock manager.

    Returns:
        KeyedLockManager instance
    """
    global _lock_manager

    if _lock_manager is None:
        _lock_manager = KeyedLockManager()

    return _lock_manager

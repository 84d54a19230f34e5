"""
Transactional Store Access

Each public service operation runs inside one transaction: everything it
wrote is committed together, or nothing is.
"""

from collections.abc import AsyncIterator
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from dataclasses import dataclass
from typing import Any, Protocol

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from services.enrollment_service.registry import SectionAssignmentRegistry
from services.enrollment_service.repository import EnrollmentRepository


@dataclass
class StoreTransaction:
    """Repositories bound to one open transaction."""

    registry: SectionAssignmentRegistry
    enrollments: EnrollmentRepository


class Store(Protocol):
    """Anything that yields a StoreTransaction-shaped object per unit of work."""

    def transaction(self) -> AbstractAsyncContextManager[Any]: ...


class SqlAlchemyStore:
    """Opens one session and transaction per operation."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[StoreTransaction]:
        """Commit on clean exit, roll back on any exception."""
        async with self.session_factory() as session:
            async with session.begin():
                yield StoreTransaction(
                    registry=SectionAssignmentRegistry(session),
                    enrollments=EnrollmentRepository(session),
                )

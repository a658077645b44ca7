"""Shared plumbing for services that talk to the store.

Services own one AsyncSession and one deadline. Every round-trip goes
through _run() so it is bounded; commit/rollback helpers do the same.
"""

from typing import Awaitable, Optional, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession

from netkeeper.db.deadline import bounded, resolve_timeout
from netkeeper.events.store import EventStore

T = TypeVar("T")


class StoreService:
    def __init__(self, db: AsyncSession, timeout: Optional[float] = None):
        self.db = db
        self.timeout = resolve_timeout(timeout)
        self.events = EventStore(db, self.timeout)

    async def _run(self, awaitable: Awaitable[T], op: str) -> T:
        return await bounded(awaitable, self.timeout, op=op)

    async def _commit(self, op: str) -> None:
        await self._run(self.db.commit(), f"{op}.commit")

    async def _rollback(self) -> None:
        await self._run(self.db.rollback(), "rollback")

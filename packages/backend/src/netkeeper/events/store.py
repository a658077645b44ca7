"""Event store — append-only audit log.

Every lifecycle change (admin bootstrap, network and key create/delete,
key consumption) appends an event in the same session as the change, so
the event commits or rolls back together with it.

Events never carry secrets: no passwords, tokens or key values.
"""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from netkeeper.db.deadline import bounded, resolve_timeout
from netkeeper.db.models import Event


class EventStore:
    """Append-only event store backed by the main database."""

    def __init__(self, db: AsyncSession, timeout: Optional[float] = None):
        self.db = db
        self.timeout = resolve_timeout(timeout)

    def append(
        self,
        stream_id: str,
        event_type: str,
        data: dict,
        metadata: dict | None = None,
    ) -> Event:
        """Stage an event in the current transaction. Written on commit."""
        event = Event(
            stream_id=stream_id,
            type=event_type,
            data=data,
            meta=metadata or {},
        )
        self.db.add(event)
        return event

    async def read_stream(
        self,
        stream_id: str,
        after_id: int = 0,
        limit: int = 100,
    ) -> list[Event]:
        """Read events for a specific stream, optionally after a given position."""
        query = (
            select(Event)
            .where(Event.stream_id == stream_id, Event.id > after_id)
            .order_by(Event.id)
            .limit(limit)
        )
        result = await bounded(self.db.execute(query), self.timeout, op="events.read_stream")
        return list(result.scalars().all())

    async def read_all(
        self,
        after_id: int = 0,
        event_types: list[str] | None = None,
        limit: int = 100,
    ) -> list[Event]:
        """Read events across all streams."""
        query = select(Event).where(Event.id > after_id).order_by(Event.id).limit(limit)
        if event_types:
            query = query.where(Event.type.in_(event_types))
        result = await bounded(self.db.execute(query), self.timeout, op="events.read_all")
        return list(result.scalars().all())

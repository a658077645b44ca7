"""Access key manager — bounded-use enrollment keys scoped to a network.

Consumption is the one place where concurrent callers contend for the
same row. It is a single conditional UPDATE:

    UPDATE access_keys SET uses_remaining = uses_remaining - 1
    WHERE id = :id AND uses_remaining > 0
    RETURNING value, uses_remaining

The database serializes those statements per row, so with k uses left
and N racing callers exactly min(N, k) get a row back. Nothing here reads
the count and writes it back separately, and no in-process lock is used:
the store is shared by every server process.

Callers that cannot tell whether a consumption committed (timeout, lost
connection) pass an attempt_id. The decrement and a key_consumptions row
keyed by attempt_id commit together, so replaying the same attempt
returns the original result instead of spending another use.
"""

import secrets
from dataclasses import dataclass
from typing import Optional

import structlog
from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from netkeeper.auth.dependencies import CurrentIdentity
from netkeeper.db.models import AccessKey, KeyConsumption
from netkeeper.errors import (
    ConflictError,
    ExhaustedError,
    InvalidError,
    NotFoundError,
)
from netkeeper.events.types import (
    ACCESS_KEY_CONSUMED,
    ACCESS_KEY_CREATED,
    ACCESS_KEY_DELETED,
    ACCESS_KEY_EXHAUSTED,
    network_stream,
)
from netkeeper.services.base import StoreService
from netkeeper.services.network_service import NetworkService

logger = structlog.get_logger()

# access_keys.uses is a 32-bit INTEGER
MAX_KEY_USES = 2**31 - 1


def generate_key_value() -> str:
    return secrets.token_urlsafe(32)


def generate_key_name() -> str:
    return f"key-{secrets.token_hex(4)}"


@dataclass
class Consumption:
    """Result of a successful consume_key call."""

    network: str
    name: str
    value: str
    uses_remaining: int
    replayed: bool = False


class AccessKeyService(StoreService):
    """Business logic for access keys."""

    def __init__(self, db: AsyncSession, timeout: Optional[float] = None):
        super().__init__(db, timeout)
        self.networks = NetworkService(db, timeout)

    # ─── Lookups ────────────────────────────────────────

    async def _find_key(self, netid: str, name: str) -> AccessKey | None:
        result = await self._run(
            self.db.execute(
                select(AccessKey)
                .where(AccessKey.network_id == netid, AccessKey.name == name)
                .execution_options(populate_existing=True)
            ),
            "access_keys.get",
        )
        return result.scalars().first()

    async def _require_key(self, netid: str, name: str) -> AccessKey:
        await self.networks.require_network(netid)
        key = await self._find_key(netid, name)
        if key is None:
            raise NotFoundError(f"Access key {name} not found in network {netid}")
        return key

    # ─── CRUD ───────────────────────────────────────────

    async def create_key(
        self,
        identity: CurrentIdentity,
        netid: str,
        name: Optional[str],
        uses: int,
    ) -> AccessKey:
        """Create a key with `uses` enrollments. A missing name is generated."""
        identity.require_master_key()
        if uses <= 0:
            raise InvalidError("Access key uses must be greater than zero")
        if uses > MAX_KEY_USES:
            raise InvalidError(f"Access key uses must be at most {MAX_KEY_USES}")
        await self.networks.require_network(netid)

        name = name or generate_key_name()
        key = AccessKey(
            network_id=netid,
            name=name,
            value=generate_key_value(),
            uses=uses,
            uses_remaining=uses,
        )
        self.db.add(key)
        try:
            await self._run(self.db.flush(), "access_keys.insert")
        except IntegrityError:
            await self._rollback()
            # The network may have been deleted underneath us.
            await self.networks.require_network(netid)
            raise ConflictError(f"Access key {name} already exists in network {netid}")

        self.events.append(
            stream_id=network_stream(netid),
            event_type=ACCESS_KEY_CREATED,
            data={"netid": netid, "name": name, "uses": uses},
        )
        await self._commit("access_key.create")
        logger.info("access_key.created", netid=netid, name=name, uses=uses)
        return key

    async def list_keys(self, identity: CurrentIdentity, netid: str) -> list[AccessKey]:
        identity.require_master_key()
        await self.networks.require_network(netid)
        result = await self._run(
            self.db.execute(
                select(AccessKey)
                .where(AccessKey.network_id == netid)
                .order_by(AccessKey.name)
                .execution_options(populate_existing=True)
            ),
            "access_keys.list",
        )
        return list(result.scalars().all())

    async def get_key(
        self, identity: CurrentIdentity, netid: str, name: str
    ) -> AccessKey:
        identity.require_master_key()
        return await self._require_key(netid, name)

    async def delete_key(
        self, identity: CurrentIdentity, netid: str, name: str
    ) -> None:
        identity.require_master_key()
        key = await self._require_key(netid, name)
        key_id = key.id

        try:
            await self._run(
                self.db.execute(
                    delete(KeyConsumption)
                    .where(KeyConsumption.access_key_id == key_id)
                    .execution_options(synchronize_session=False)
                ),
                "key_consumptions.delete",
            )
            result = await self._run(
                self.db.execute(
                    delete(AccessKey)
                    .where(AccessKey.id == key_id)
                    .execution_options(synchronize_session=False)
                ),
                "access_keys.delete",
            )
            if result.rowcount == 0:
                raise NotFoundError(f"Access key {name} not found in network {netid}")

            self.events.append(
                stream_id=network_stream(netid),
                event_type=ACCESS_KEY_DELETED,
                data={"netid": netid, "name": name},
            )
            await self._commit("access_key.delete")
        except Exception:
            await self.db.rollback()
            raise

        logger.info("access_key.deleted", netid=netid, name=name)

    # ─── Consumption ────────────────────────────────────

    async def consume_key(
        self,
        identity: CurrentIdentity,
        netid: str,
        name: str,
        attempt_id: Optional[str] = None,
    ) -> Consumption:
        """Spend one use of a key and return its value.

        NotFoundError if the network or key does not exist (or was deleted
        mid-call), ExhaustedError if no uses remain. With attempt_id, a
        repeated call for an attempt that already committed returns the
        original result and spends nothing.
        """
        identity.require_master_key()
        key = await self._require_key(netid, name)
        key_id = key.id

        if attempt_id:
            replay = await self._replay(attempt_id, key_id, netid, name)
            if replay is not None:
                return replay

        result = await self._run(
            self.db.execute(
                update(AccessKey)
                .where(AccessKey.id == key_id, AccessKey.uses_remaining > 0)
                .values(uses_remaining=AccessKey.uses_remaining - 1)
                .returning(AccessKey.value, AccessKey.uses_remaining)
                .execution_options(synchronize_session=False)
            ),
            "access_keys.consume",
        )
        row = result.first()
        if row is None:
            await self._rollback()
            if attempt_id:
                # A duplicate of this attempt may have spent the last use
                # after our first replay check.
                replay = await self._replay(attempt_id, key_id, netid, name)
                if replay is not None:
                    return replay
            if await self._find_key(netid, name) is None:
                raise NotFoundError(f"Access key {name} not found in network {netid}")
            logger.info("access_key.exhausted", netid=netid, name=name)
            raise ExhaustedError(f"Access key {name} has no uses remaining")

        value, uses_remaining = row
        if attempt_id:
            self.db.add(KeyConsumption(attempt_id=attempt_id, access_key_id=key_id))
        self.events.append(
            stream_id=network_stream(netid),
            event_type=ACCESS_KEY_CONSUMED,
            data={"netid": netid, "name": name, "uses_remaining": uses_remaining},
            metadata={"attempt_id": attempt_id} if attempt_id else None,
        )
        if uses_remaining == 0:
            self.events.append(
                stream_id=network_stream(netid),
                event_type=ACCESS_KEY_EXHAUSTED,
                data={"netid": netid, "name": name},
            )

        try:
            await self._commit("access_key.consume")
        except IntegrityError:
            # Another call with the same attempt_id committed first. Our
            # decrement rolls back with the duplicate consumption row.
            await self._rollback()
            replay = await self._replay(attempt_id, key_id, netid, name)
            if replay is None:
                raise
            return replay

        logger.info(
            "access_key.consumed",
            netid=netid,
            name=name,
            uses_remaining=uses_remaining,
        )
        return Consumption(
            network=netid,
            name=name,
            value=value,
            uses_remaining=uses_remaining,
        )

    async def _replay(
        self, attempt_id: str, key_id: int, netid: str, name: str
    ) -> Consumption | None:
        result = await self._run(
            self.db.execute(
                select(KeyConsumption).where(KeyConsumption.attempt_id == attempt_id)
            ),
            "key_consumptions.get",
        )
        consumption = result.scalars().first()
        if consumption is None:
            return None
        if consumption.access_key_id != key_id:
            raise ConflictError(f"Attempt {attempt_id} was used for a different key")

        key = await self._find_key(netid, name)
        if key is None:
            raise NotFoundError(f"Access key {name} not found in network {netid}")
        logger.info("access_key.consume_replayed", netid=netid, name=name)
        return Consumption(
            network=netid,
            name=name,
            value=key.value,
            uses_remaining=key.uses_remaining,
            replayed=True,
        )

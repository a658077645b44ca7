"""Network registry — create, list, get and delete virtual networks.

Deleting a network removes its access keys (and their consumption
records) in the same transaction. If any statement fails the whole
transaction rolls back, so a network never disappears while leaving
keys behind, or the other way round.
"""

import ipaddress

import structlog
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError

from netkeeper.auth.dependencies import CurrentIdentity
from netkeeper.db.models import AccessKey, KeyConsumption, Network
from netkeeper.errors import ConflictError, InvalidError, NotFoundError
from netkeeper.events.types import NETWORK_CREATED, NETWORK_DELETED, network_stream
from netkeeper.services.base import StoreService

logger = structlog.get_logger()


def validate_address_range(addressrange: str) -> str:
    """Check that addressrange is an IPv4/IPv6 CIDR like 10.71.0.0/16.

    Host bits may be set (10.71.0.1/16 is accepted, as ParseCIDR-style
    parsers do). The value is returned unchanged.
    """
    if "/" not in addressrange:
        raise InvalidError(f"Address range {addressrange!r} must be in CIDR notation")
    try:
        ipaddress.ip_network(addressrange.strip(), strict=False)
    except ValueError:
        raise InvalidError(f"Address range {addressrange!r} is not a valid CIDR")
    return addressrange


class NetworkService(StoreService):
    """Business logic for networks."""

    async def create_network(
        self, identity: CurrentIdentity, netid: str, addressrange: str
    ) -> Network:
        identity.require_master_key()
        if not netid:
            raise InvalidError("Network id must not be empty")
        validate_address_range(addressrange)

        network = Network(netid=netid, addressrange=addressrange)
        self.db.add(network)
        try:
            await self._run(self.db.flush(), "networks.insert")
        except IntegrityError:
            await self._rollback()
            raise ConflictError(f"Network {netid} already exists")

        self.events.append(
            stream_id=network_stream(netid),
            event_type=NETWORK_CREATED,
            data={"netid": netid, "addressrange": addressrange},
        )
        await self._commit("network.create")
        logger.info("network.created", netid=netid, addressrange=addressrange)
        return network

    async def list_networks(self, identity: CurrentIdentity) -> list[Network]:
        identity.require_master_key()
        result = await self._run(
            self.db.execute(select(Network).order_by(Network.netid)),
            "networks.list",
        )
        return list(result.scalars().all())

    async def get_network(self, identity: CurrentIdentity, netid: str) -> Network:
        identity.require_master_key()
        return await self.require_network(netid)

    async def require_network(self, netid: str) -> Network:
        """Load a network or raise NotFoundError. No authorization check."""
        result = await self._run(
            self.db.execute(select(Network).where(Network.netid == netid)),
            "networks.get",
        )
        network = result.scalars().first()
        if network is None:
            raise NotFoundError(f"Network {netid} not found")
        return network

    async def delete_network(self, identity: CurrentIdentity, netid: str) -> int:
        """Delete a network and all of its keys. Returns the number of keys removed."""
        identity.require_master_key()
        await self.require_network(netid)

        key_ids = select(AccessKey.id).where(AccessKey.network_id == netid)
        try:
            await self._run(
                self.db.execute(
                    delete(KeyConsumption)
                    .where(KeyConsumption.access_key_id.in_(key_ids))
                    .execution_options(synchronize_session=False)
                ),
                "key_consumptions.cascade",
            )
            keys = await self._run(
                self.db.execute(
                    delete(AccessKey)
                    .where(AccessKey.network_id == netid)
                    .execution_options(synchronize_session=False)
                ),
                "access_keys.cascade",
            )
            removed = await self._run(
                self.db.execute(
                    delete(Network)
                    .where(Network.netid == netid)
                    .execution_options(synchronize_session=False)
                ),
                "networks.delete",
            )
            if removed.rowcount == 0:
                raise NotFoundError(f"Network {netid} not found")

            self.events.append(
                stream_id=network_stream(netid),
                event_type=NETWORK_DELETED,
                data={"netid": netid, "keys_deleted": keys.rowcount},
            )
            await self._commit("network.delete")
        except Exception:
            await self.db.rollback()
            raise

        logger.info("network.deleted", netid=netid, keys_deleted=keys.rowcount)
        return keys.rowcount

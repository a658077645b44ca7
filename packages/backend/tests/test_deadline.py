"""Store deadlines: slow store calls fail fast with a retryable error."""

import asyncio

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from netkeeper.api.deps import network_service
from netkeeper.config import settings
from netkeeper.db.deadline import bounded, resolve_timeout
from netkeeper.errors import StoreUnavailableError
from netkeeper.events.store import EventStore
from netkeeper.main import app
from netkeeper.services.network_service import NetworkService


def test_resolve_timeout_clamps_to_configured_maximum():
    ceiling = settings.store_timeout_seconds
    assert resolve_timeout(None) == ceiling
    assert resolve_timeout(0) == ceiling
    assert resolve_timeout(-1) == ceiling
    assert resolve_timeout(0.5) == 0.5
    assert resolve_timeout(ceiling * 10) == ceiling


@pytest.mark.asyncio
async def test_bounded_returns_result():
    async def quick():
        return 42

    assert await bounded(quick(), timeout=1) == 42


@pytest.mark.asyncio
async def test_bounded_timeout_is_retryable():
    with pytest.raises(StoreUnavailableError) as exc_info:
        await bounded(asyncio.sleep(5), timeout=0.05, op="test.sleep")
    assert exc_info.value.retryable is True
    assert exc_info.value.status_code == 503


@pytest.mark.asyncio
async def test_bounded_maps_operational_error():
    async def broken():
        raise OperationalError("SELECT 1", {}, Exception("connection refused"))

    with pytest.raises(StoreUnavailableError) as exc_info:
        await bounded(broken(), timeout=1)
    # Driver text stays out of the caller-facing message
    assert "connection refused" not in exc_info.value.message


@pytest.mark.asyncio
async def test_bounded_passes_integrity_errors_through():
    async def duplicate():
        raise IntegrityError("INSERT", {}, Exception("UNIQUE constraint failed"))

    with pytest.raises(IntegrityError):
        await bounded(duplicate(), timeout=1)


class _HangingNetworks(NetworkService):
    """A store that never answers."""

    async def list_networks(self, identity):
        identity.require_master_key()
        await self._run(asyncio.sleep(5), "networks.list")


@pytest.mark.asyncio
async def test_slow_store_returns_503(client):
    app.dependency_overrides[network_service] = lambda: _HangingNetworks(None, 0.05)

    r = await client.get("/api/networks")
    assert r.status_code == 503
    assert r.headers["retry-after"] == "1"
    body = r.json()
    assert body["Code"] == 503
    assert body["Response"] == {"kind": "internal", "retryable": True}


@pytest.mark.asyncio
async def test_request_timeout_header_tightens_deadline(client, skynet):
    """A tighter X-Request-Timeout still works for a fast store."""
    r = await client.get("/api/networks", headers={"X-Request-Timeout": "5"})
    assert r.status_code == 200
    assert [n["netid"] for n in r.json()] == ["skynet"]


class _HangingSession:
    """Stands in for an AsyncSession whose connection never answers."""

    async def execute(self, statement):
        await asyncio.sleep(5)


@pytest.mark.asyncio
async def test_audit_reads_are_bounded():
    store = EventStore(_HangingSession(), timeout=0.05)
    with pytest.raises(StoreUnavailableError):
        await store.read_stream("network:skynet")
    with pytest.raises(StoreUnavailableError):
        await store.read_all()

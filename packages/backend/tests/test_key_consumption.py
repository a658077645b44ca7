"""Access key consumption under concurrency.

Each racing caller gets its own session (its own database connection),
the way separate requests or separate server processes would. The
conditional UPDATE is the only thing keeping them honest.
"""

import asyncio

import pytest

from netkeeper.errors import ConflictError, ExhaustedError, NotFoundError
from netkeeper.events.store import EventStore
from netkeeper.events.types import (
    ACCESS_KEY_CONSUMED,
    ACCESS_KEY_EXHAUSTED,
    network_stream,
)
from netkeeper.services.access_key_service import AccessKeyService
from netkeeper.services.network_service import NetworkService


@pytest.fixture
async def skynet_key(session_factory, master):
    """skynet network with a 10-use key named skynet."""
    async with session_factory() as db:
        await NetworkService(db).create_network(master, "skynet", "10.71.0.0/16")
        key = await AccessKeyService(db).create_key(master, "skynet", "skynet", 10)
        return key.value


async def _consume(session_factory, master, attempt_id=None, name="skynet"):
    async with session_factory() as db:
        return await AccessKeyService(db).consume_key(
            master, "skynet", name, attempt_id=attempt_id
        )


async def _uses_remaining(session_factory, master, name="skynet"):
    async with session_factory() as db:
        key = await AccessKeyService(db).get_key(master, "skynet", name)
        return key.uses_remaining


@pytest.mark.asyncio
async def test_concurrent_consumers_never_overspend(session_factory, master, skynet_key):
    """15 racing consumers against 10 uses: exactly 10 succeed, 5 are exhausted."""
    results = await asyncio.gather(
        *(_consume(session_factory, master) for _ in range(15)),
        return_exceptions=True,
    )

    successes = [r for r in results if not isinstance(r, Exception)]
    failures = [r for r in results if isinstance(r, Exception)]
    assert len(successes) == 10
    assert len(failures) == 5
    assert all(isinstance(f, ExhaustedError) for f in failures)

    assert {s.value for s in successes} == {skynet_key}
    # Every success observed a distinct pre-decrement value
    assert sorted(s.uses_remaining for s in successes) == list(range(10))
    assert await _uses_remaining(session_factory, master) == 0


@pytest.mark.asyncio
async def test_concurrent_http_consumers_never_overspend(client, skynet):
    r = await client.post("/api/networks/skynet/keys", json={"name": "skynet", "uses": 10})
    assert r.status_code == 200

    responses = await asyncio.gather(
        *(client.post("/api/networks/skynet/keys/skynet/consume") for _ in range(15))
    )
    codes = sorted(r.status_code for r in responses)
    assert codes == [200] * 10 + [410] * 5

    key = (await client.get("/api/networks/skynet/keys/skynet")).json()
    assert key["uses"] == 0


@pytest.mark.asyncio
async def test_consume_exhausted_never_goes_negative(session_factory, master, skynet_key):
    for _ in range(10):
        await _consume(session_factory, master)
    for _ in range(3):
        with pytest.raises(ExhaustedError):
            await _consume(session_factory, master)
    assert await _uses_remaining(session_factory, master) == 0


@pytest.mark.asyncio
async def test_replayed_attempt_spends_once(session_factory, master, skynet_key):
    first = await _consume(session_factory, master, attempt_id="enroll-node-1")
    again = await _consume(session_factory, master, attempt_id="enroll-node-1")

    assert first.replayed is False
    assert again.replayed is True
    assert again.value == first.value == skynet_key
    assert await _uses_remaining(session_factory, master) == 9


@pytest.mark.asyncio
async def test_concurrent_duplicate_attempts_spend_once(session_factory, master, skynet_key):
    """Retries racing the original (same attempt id) all succeed, one use spent."""
    results = await asyncio.gather(
        *(_consume(session_factory, master, attempt_id="retry-me") for _ in range(5))
    )
    assert {r.value for r in results} == {skynet_key}
    assert sum(1 for r in results if not r.replayed) == 1
    assert await _uses_remaining(session_factory, master) == 9


@pytest.mark.asyncio
async def test_distinct_attempts_each_spend(session_factory, master, skynet_key):
    for i in range(3):
        await _consume(session_factory, master, attempt_id=f"attempt-{i}")
    assert await _uses_remaining(session_factory, master) == 7


@pytest.mark.asyncio
async def test_attempt_id_bound_to_one_key(session_factory, master, skynet_key):
    async with session_factory() as db:
        await AccessKeyService(db).create_key(master, "skynet", "other", 5)

    await _consume(session_factory, master, attempt_id="shared")
    with pytest.raises(ConflictError):
        await _consume(session_factory, master, attempt_id="shared", name="other")
    assert await _uses_remaining(session_factory, master, name="other") == 5


@pytest.mark.asyncio
async def test_consume_deleted_key_is_not_found(session_factory, master, skynet_key):
    async with session_factory() as db:
        await AccessKeyService(db).delete_key(master, "skynet", "skynet")
    with pytest.raises(NotFoundError):
        await _consume(session_factory, master)


@pytest.mark.asyncio
async def test_consumption_is_audited(session_factory, master, skynet_key):
    await _consume(session_factory, master)

    async with session_factory() as db:
        key = await AccessKeyService(db).create_key(master, "skynet", "single", 1)
        assert key.uses_remaining == 1
    await _consume(session_factory, master, name="single")

    async with session_factory() as db:
        events = await EventStore(db).read_stream(network_stream("skynet"))
    types = [e.type for e in events]
    assert types.count(ACCESS_KEY_CONSUMED) == 2
    assert types.count(ACCESS_KEY_EXHAUSTED) == 1
    # No secrets in the audit log
    assert all(skynet_key not in str(e.data) for e in events)


@pytest.mark.asyncio
async def test_duplicate_attempts_racing_for_last_use(session_factory, master):
    """Retries of the attempt that took the last use replay it, not Exhausted."""
    async with session_factory() as db:
        await NetworkService(db).create_network(master, "skynet", "10.71.0.0/16")
        key = await AccessKeyService(db).create_key(master, "skynet", "last", 1)

    results = await asyncio.gather(
        *(_consume(session_factory, master, attempt_id="same", name="last") for _ in range(5)),
        return_exceptions=True,
    )
    assert not [r for r in results if isinstance(r, Exception)]
    assert {r.value for r in results} == {key.value}
    assert sum(1 for r in results if not r.replayed) == 1
    assert await _uses_remaining(session_factory, master, name="last") == 0

    # A different attempt against the spent key is still exhausted
    with pytest.raises(ExhaustedError):
        await _consume(session_factory, master, attempt_id="other", name="last")

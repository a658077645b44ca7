"""Deadlines for store round-trips.

Every execute/flush/commit a service issues goes through bounded(), so a
slow or unreachable database turns into a StoreUnavailableError (retryable)
instead of a hung request. Connection-level driver failures are mapped the
same way. Constraint violations are left alone; services translate those
into Conflict themselves.
"""

import asyncio
from typing import Awaitable, Optional, TypeVar

import structlog
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError

from netkeeper.config import settings
from netkeeper.errors import StoreUnavailableError

logger = structlog.get_logger()

T = TypeVar("T")


def resolve_timeout(requested: Optional[float]) -> float:
    """Clamp a caller-supplied deadline to the configured maximum."""
    ceiling = settings.store_timeout_seconds
    if requested is None or requested <= 0:
        return ceiling
    return min(requested, ceiling)


async def bounded(awaitable: Awaitable[T], timeout: float, op: str = "store") -> T:
    """Await a store operation, failing with StoreUnavailableError on timeout."""
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning("store.timeout", op=op, timeout=timeout)
        raise StoreUnavailableError(
            f"Store did not respond within {timeout:g}s; outcome unknown, retry"
        )
    except IntegrityError:
        raise
    except OperationalError as e:
        logger.warning("store.unavailable", op=op, error=str(e.orig))
        raise StoreUnavailableError("Store unavailable; retry") from None
    except DBAPIError as e:
        if e.connection_invalidated:
            logger.warning("store.connection_lost", op=op, error=str(e.orig))
            raise StoreUnavailableError("Store connection lost; retry") from None
        raise

"""Health check endpoint.

Verifies the server is running and its dependencies are reachable.
Redis is optional (rate limiting only), so its absence does not make
the service degraded.
"""

from fastapi import APIRouter
from sqlalchemy import text

from netkeeper import __version__
from netkeeper.cache import get_redis
from netkeeper.db.engine import engine

router = APIRouter()


@router.get("/health")
async def health_check():
    """Check server health and dependency connectivity."""
    checks = {"server": "ok", "version": __version__}

    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        checks["database"] = "ok"
    except Exception as e:
        checks["database"] = f"error: {type(e).__name__}"

    try:
        await get_redis().ping()
        checks["redis"] = "ok"
    except Exception:
        checks["redis"] = "unavailable"

    status = "healthy" if checks["database"] == "ok" else "degraded"
    return {"status": status, **checks}

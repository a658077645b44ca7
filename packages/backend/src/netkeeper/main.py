"""FastAPI application factory.

create_app() returns a configured FastAPI instance. Lifespan manages
startup/shutdown (Redis, database engine). Middleware, CORS, error
handlers and routers are all registered here.
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from netkeeper import __version__
from netkeeper.api import api_router
from netkeeper.config import settings
from netkeeper.errors import NetkeeperError
from netkeeper.schemas.envelope import Envelope, ErrorDetail

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle.

    Anything before `yield` runs at startup, after `yield` runs at shutdown.
    """
    logger.info(
        "netkeeper.starting",
        version=__version__,
        environment=settings.environment,
        port=settings.port,
        master_key_enabled=bool(settings.master_key),
    )

    from netkeeper.cache import close_redis, init_redis
    try:
        await init_redis()
        logger.info("netkeeper.redis_connected", url=settings.redis_url)
    except Exception as e:
        logger.warning("netkeeper.redis_unavailable", error=str(e))
        # Redis is optional — only rate limiting needs it

    yield

    logger.info("netkeeper.shutdown")
    await close_redis()

    from netkeeper.db.engine import engine
    await engine.dispose()


def _envelope(status_code: int, message: str, kind: str, retryable: bool) -> dict:
    return Envelope[ErrorDetail](
        Code=status_code,
        Message=message,
        Response=ErrorDetail(kind=kind, retryable=retryable),
    ).model_dump()


async def netkeeper_error_handler(request: Request, exc: NetkeeperError) -> JSONResponse:
    headers = {}
    if exc.kind == "unauthorized":
        headers["WWW-Authenticate"] = "Bearer"
    if exc.retryable:
        headers["Retry-After"] = "1"
    if exc.status_code >= 500:
        logger.warning("request.failed", kind=exc.kind, error=exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content=_envelope(exc.status_code, exc.message, exc.kind, exc.retryable),
        headers=headers,
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("request.unhandled_error", error_type=type(exc).__name__)
    return JSONResponse(
        status_code=500,
        content=_envelope(500, "Internal server error", "internal", False),
    )


def create_app() -> FastAPI:
    """Build and return the FastAPI application."""
    app = FastAPI(
        title="netkeeper",
        description="Admin bootstrap, network registry and access keys for a virtual network control plane",
        version=__version__,
        lifespan=lifespan,
    )

    # ── Middleware stack ──────────────────────────────────────
    # Note: Starlette middleware executes in reverse order of registration.
    # Request flow: RequestId → Security → RateLimit → CORS → handler

    from netkeeper.middleware.rate_limit import RateLimitMiddleware
    from netkeeper.middleware.request_id import RequestIdMiddleware
    from netkeeper.middleware.security import SecurityHeadersMiddleware

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(
        RateLimitMiddleware,
        default_rpm=settings.rate_limit_rpm,
        auth_rpm=settings.rate_limit_auth_rpm,
    )
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestIdMiddleware)

    app.add_exception_handler(NetkeeperError, netkeeper_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    app.include_router(api_router)

    return app


# Default app instance (used by uvicorn: netkeeper.main:app)
app = create_app()

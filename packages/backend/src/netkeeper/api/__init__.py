"""API route aggregation.

All routers registered here get mounted in main.py under /api.

Authentication is resolved per route (CurrentIdentity dependency) and
authorization is checked by the services, because the rules differ per
operation: hasadmin is open, DELETE /users/{username} accepts the admin's
own token, everything else needs the master key.
"""

from fastapi import APIRouter

from netkeeper.api.health import router as health_router
from netkeeper.api.networks import router as networks_router
from netkeeper.api.users import router as users_router

api_router = APIRouter(prefix="/api")

api_router.include_router(health_router, tags=["health"])
api_router.include_router(users_router, tags=["users"])
api_router.include_router(networks_router, tags=["networks", "access-keys"])

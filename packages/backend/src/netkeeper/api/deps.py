"""Shared route dependencies.

X-Request-Timeout lets a caller tighten the store deadline for one
request (seconds). It can never exceed NETKEEPER_STORE_TIMEOUT_SECONDS.
"""

from typing import Optional

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from netkeeper.db.deadline import resolve_timeout
from netkeeper.db.engine import get_db
from netkeeper.services.access_key_service import AccessKeyService
from netkeeper.services.admin_service import AdminService
from netkeeper.services.network_service import NetworkService


def request_timeout(
    x_request_timeout: Optional[float] = Header(None),
) -> float:
    return resolve_timeout(x_request_timeout)


def admin_service(
    db: AsyncSession = Depends(get_db),
    timeout: float = Depends(request_timeout),
) -> AdminService:
    return AdminService(db, timeout)


def network_service(
    db: AsyncSession = Depends(get_db),
    timeout: float = Depends(request_timeout),
) -> NetworkService:
    return NetworkService(db, timeout)


def access_key_service(
    db: AsyncSession = Depends(get_db),
    timeout: float = Depends(request_timeout),
) -> AccessKeyService:
    return AccessKeyService(db, timeout)

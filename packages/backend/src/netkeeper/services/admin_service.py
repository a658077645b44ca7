"""Admin bootstrap — create, authenticate and delete the single admin.

The one-admin rule is not tracked in memory anywhere. It is the
users.admin_slot unique constraint, reached through
CredentialStore.insert_if_absent, so concurrent bootstrap attempts across
any number of processes produce exactly one admin.
"""

from typing import Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from netkeeper.auth.dependencies import CurrentIdentity
from netkeeper.auth.password import hash_password
from netkeeper.db.models import Identity
from netkeeper.errors import NotFoundError, UnauthorizedError
from netkeeper.events.types import ADMIN_CREATED, ADMIN_DELETED, admin_stream
from netkeeper.services.auth_service import AuthService
from netkeeper.services.base import StoreService
from netkeeper.services.credential_store import CredentialStore

logger = structlog.get_logger()


class AdminService(StoreService):
    """Business logic for the admin identity."""

    def __init__(self, db: AsyncSession, timeout: Optional[float] = None):
        super().__init__(db, timeout)
        self.store = CredentialStore(db, timeout)
        self.auth = AuthService(self.store)

    async def has_admin(self) -> bool:
        return await self.store.count() == 1

    async def create_admin(
        self, identity: CurrentIdentity, username: str, password: str
    ) -> Identity:
        """Create the admin. Master key only; ConflictError if one exists."""
        identity.require_master_key()

        admin = await self.store.insert_if_absent(username, hash_password(password))
        self.events.append(
            stream_id=admin_stream(username),
            event_type=ADMIN_CREATED,
            data={"username": username},
        )
        await self._commit("admin.create")
        logger.info("admin.created", username=username)
        return admin

    async def authenticate(self, username: str, password: str) -> tuple[str, str]:
        return await self.auth.authenticate(username, password)

    async def delete_admin(self, identity: CurrentIdentity, username: str) -> None:
        """Delete the admin.

        Allowed for the master key, or for a token issued to this admin.
        NotFoundError if there is no such admin, including when a
        concurrent delete got there first.
        """
        if not identity.is_master_key and identity.username != username:
            raise UnauthorizedError("Token does not belong to this user")
        await self.store.get(username)

        deleted = await self.store.delete_if_exists(username)
        if not deleted:
            await self._rollback()
            logger.info("admin.delete_noop", username=username)
            raise NotFoundError(f"User {username} not found")

        self.events.append(
            stream_id=admin_stream(username),
            event_type=ADMIN_DELETED,
            data={"username": username, "by": identity.identity_type},
        )
        await self._commit("admin.delete")
        logger.info("admin.deleted", username=username, by=identity.identity_type)

"""Credential store — persistence for the admin identity.

Every write is a single statement so the database decides races:
insert_if_absent relies on the users.admin_slot unique constraint and
delete_if_exists reports whether its DELETE actually removed a row.
Neither commits; the caller owns the transaction.
"""

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError

from netkeeper.db.models import Identity
from netkeeper.errors import ConflictError, NotFoundError
from netkeeper.services.base import StoreService


class CredentialStore(StoreService):
    """Insert-if-absent / get / delete-if-exists for the admin identity."""

    async def insert_if_absent(self, username: str, password_hash: str) -> Identity:
        """Insert the identity unless one already exists (any username).

        Raises ConflictError when the admin slot is taken. The session is
        rolled back in that case.
        """
        identity = Identity(username=username, password_hash=password_hash)
        self.db.add(identity)
        try:
            await self._run(self.db.flush(), "users.insert")
        except IntegrityError:
            await self._rollback()
            raise ConflictError("An admin already exists")
        return identity

    async def get(self, username: str) -> Identity:
        result = await self._run(
            self.db.execute(select(Identity).where(Identity.username == username)),
            "users.get",
        )
        identity = result.scalars().first()
        if identity is None:
            raise NotFoundError(f"User {username} not found")
        return identity

    async def delete_if_exists(self, username: str) -> bool:
        """Delete the identity. Returns False if there was nothing to delete."""
        result = await self._run(
            self.db.execute(
                delete(Identity)
                .where(Identity.username == username)
                .execution_options(synchronize_session=False)
            ),
            "users.delete",
        )
        return result.rowcount > 0

    async def count(self) -> int:
        result = await self._run(
            self.db.execute(select(func.count()).select_from(Identity)),
            "users.count",
        )
        return result.scalar_one()

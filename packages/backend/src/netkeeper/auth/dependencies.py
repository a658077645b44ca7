"""FastAPI auth dependencies.

These are used as Depends() in route handlers to turn the Authorization
header into a CurrentIdentity. They only answer "who is calling"; whether
that caller may perform an operation is decided by the service.

Header format: ``Authorization: Bearer <master-key-or-jwt>``.
The master key is checked first, so it never reaches the JWT decoder.
"""

from typing import Optional

from fastapi import Depends, Header

from netkeeper.auth.capability import is_master_key
from netkeeper.auth.jwt import TokenError, verify_token
from netkeeper.errors import UnauthorizedError

MASTER_KEY = "master_key"
ADMIN = "admin"


class CurrentIdentity:
    """The authenticated caller.

    identity_type is "master_key" for the superuser capability or
    "admin" for a holder of a valid admin token (username set).
    """

    def __init__(self, identity_type: str, username: Optional[str] = None):
        self.identity_type = identity_type
        self.username = username

    @property
    def is_master_key(self) -> bool:
        return self.identity_type == MASTER_KEY

    def require_master_key(self) -> None:
        if not self.is_master_key:
            raise UnauthorizedError("This operation requires the master key")

    def __repr__(self) -> str:
        return f"CurrentIdentity({self.identity_type!r}, username={self.username!r})"


def master_identity() -> CurrentIdentity:
    return CurrentIdentity(MASTER_KEY)


def _bearer(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, credential = authorization.partition(" ")
    if scheme.lower() != "bearer" or not credential.strip():
        raise UnauthorizedError("Malformed Authorization header")
    return credential.strip()


def resolve_credential(credential: str) -> CurrentIdentity:
    """Resolve a bearer credential to an identity or raise UnauthorizedError."""
    if is_master_key(credential):
        return master_identity()
    try:
        payload = verify_token(credential)
    except TokenError as e:
        raise UnauthorizedError(str(e))
    return CurrentIdentity(ADMIN, username=payload["sub"])


async def get_current_identity_optional(
    authorization: Optional[str] = Header(None),
) -> Optional[CurrentIdentity]:
    """Extract current identity (optional — returns None if no auth)."""
    credential = _bearer(authorization)
    if credential is None:
        return None
    return resolve_credential(credential)


async def get_current_identity(
    identity: Optional[CurrentIdentity] = Depends(get_current_identity_optional),
) -> CurrentIdentity:
    """Extract current identity (required — 401 if no auth)."""
    if identity is None:
        raise UnauthorizedError("Authentication required")
    return identity

"""Auth service — password login and token validation for the admin.

Login failures are deliberately uniform: unknown user and wrong password
both raise UnauthorizedError("Invalid credentials") after a full bcrypt
check, so neither the message nor the timing reveals which it was.
"""

import structlog

from netkeeper.auth.jwt import TokenError, create_access_token, verify_token
from netkeeper.auth.password import verify_password
from netkeeper.errors import NotFoundError, UnauthorizedError
from netkeeper.services.credential_store import CredentialStore

logger = structlog.get_logger()


class AuthService:
    """Authenticate credentials, mint and validate access tokens."""

    def __init__(self, store: CredentialStore):
        self.store = store

    async def authenticate(self, username: str, password: str) -> tuple[str, str]:
        """Return (username, access_token) for valid credentials."""
        try:
            identity = await self.store.get(username)
        except NotFoundError:
            identity = None

        password_hash = identity.password_hash if identity else None
        if not verify_password(password, password_hash):
            logger.info("auth.failed")
            raise UnauthorizedError("Invalid credentials")

        token = create_access_token(identity.username)
        logger.info("auth.succeeded", username=identity.username)
        return identity.username, token

    def validate(self, token: str) -> str:
        """Return the username a token was issued to."""
        try:
            payload = verify_token(token)
        except TokenError as e:
            raise UnauthorizedError(str(e))
        return payload["sub"]

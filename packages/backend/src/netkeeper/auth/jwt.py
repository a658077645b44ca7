"""JWT access token creation and verification.

Tokens are stateless: signed with the process-held secret, carrying the
admin's username, issue time and expiry. There is no server-side
revocation list, so a token stays valid until it expires.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt

from netkeeper.config import settings

TOKEN_TYPE = "access"


class TokenError(Exception):
    """Raised when token verification fails."""


def create_access_token(
    username: str,
    expires_hours: Optional[int] = None,
) -> str:
    """Create a signed access token for the admin."""
    now = datetime.now(timezone.utc)
    expires = now + timedelta(
        hours=expires_hours or settings.access_token_expire_hours
    )
    payload = {
        "sub": username,
        "type": TOKEN_TYPE,
        "exp": expires,
        "iat": now,
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def verify_token(token: str) -> dict:
    """Verify and decode an access token.

    Returns the payload dict on success.
    Raises TokenError on failure.
    """
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            options={"require": ["exp", "iat", "sub"]},
        )
    except jwt.ExpiredSignatureError:
        raise TokenError("Token has expired")
    except jwt.InvalidTokenError as e:
        raise TokenError(f"Invalid token: {e}")

    if payload.get("type") != TOKEN_TYPE:
        raise TokenError("Invalid token: not an access token")
    if not isinstance(payload["sub"], str) or not payload["sub"]:
        raise TokenError("Invalid token: missing subject")
    return payload

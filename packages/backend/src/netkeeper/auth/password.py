"""Password hashing utilities.

Uses bcrypt for password hashing. bcrypt salts automatically and its
checkpw comparison is constant-time. The work factor (rounds=12) takes
~100ms per hash on modern hardware.
"""

import bcrypt

_ROUNDS = 12

# Hash of a throwaway password. Checked when the username is unknown so
# that a failed login costs the same whether or not the user exists.
_DUMMY_HASH = bcrypt.hashpw(b"netkeeper-dummy-password", bcrypt.gensalt(rounds=_ROUNDS))


def hash_password(password: str) -> str:
    """Hash a password with bcrypt.

    Passwords are truncated to 72 bytes (bcrypt's limit).
    """
    pw_bytes = password.encode("utf-8")[:72]
    salt = bcrypt.gensalt(rounds=_ROUNDS)
    return bcrypt.hashpw(pw_bytes, salt).decode("utf-8")


def verify_password(password: str, password_hash: str | None) -> bool:
    """Verify a password against its hash.

    Passing password_hash=None (unknown user) still runs a full bcrypt
    check against a dummy hash, then returns False.
    """
    pw_bytes = password.encode("utf-8")[:72]
    if password_hash is None:
        bcrypt.checkpw(pw_bytes, _DUMMY_HASH)
        return False
    try:
        return bcrypt.checkpw(pw_bytes, password_hash.encode("utf-8"))
    except (ValueError, TypeError):
        return False

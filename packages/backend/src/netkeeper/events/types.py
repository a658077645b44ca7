"""Event type constants.

Centralizing event types as constants prevents typos and makes it easy
to discover everything the audit log can contain.
"""

# ─── Admin bootstrap ─────────────────────────────────────

ADMIN_CREATED = "admin.created"
ADMIN_DELETED = "admin.deleted"

# ─── Networks ────────────────────────────────────────────

NETWORK_CREATED = "network.created"
NETWORK_DELETED = "network.deleted"

# ─── Access keys ─────────────────────────────────────────

ACCESS_KEY_CREATED = "access_key.created"
ACCESS_KEY_DELETED = "access_key.deleted"
ACCESS_KEY_CONSUMED = "access_key.consumed"
ACCESS_KEY_EXHAUSTED = "access_key.exhausted"


def admin_stream(username: str) -> str:
    return f"admin:{username}"


def network_stream(netid: str) -> str:
    return f"network:{netid}"

"""Master key (superuser capability) checks.

The master key is a configured secret, never stored as a user. It is
compared in constant time. An empty NETKEEPER_MASTER_KEY disables it.
"""

import hmac

from netkeeper.config import settings


def is_master_key(candidate: str | None) -> bool:
    configured = settings.master_key
    if not configured or not candidate:
        return False
    return hmac.compare_digest(candidate.encode("utf-8"), configured.encode("utf-8"))

"""Typed service errors.

Every failure a caller can observe is one of these. Each carries a stable
``kind`` string, the HTTP status it maps to and whether retrying the same
request can succeed. The exception handler in main.py turns them into
``{Code, Message, Response}`` envelopes.

Messages are written for callers. Driver or SQL error text never goes in
them; log it instead.
"""


class NetkeeperError(Exception):
    """Base class for structured errors."""

    kind = "internal"
    status_code = 500
    retryable = False

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class NotFoundError(NetkeeperError):
    kind = "not_found"
    status_code = 404


class ConflictError(NetkeeperError):
    """Duplicate unique key: admin exists, netid taken, key name taken."""

    kind = "conflict"
    status_code = 409


class InvalidError(NetkeeperError):
    kind = "invalid"
    status_code = 400


class UnauthorizedError(NetkeeperError):
    kind = "unauthorized"
    status_code = 401


class ExhaustedError(NetkeeperError):
    """Access key has no uses remaining."""

    kind = "exhausted"
    status_code = 410


class InternalError(NetkeeperError):
    kind = "internal"
    status_code = 500


class StoreUnavailableError(InternalError):
    """Store timed out or dropped the connection.

    The operation must not be assumed to have taken effect (or not).
    Safe to retry; consumptions should be retried with the same attempt id.
    """

    status_code = 503
    retryable = True

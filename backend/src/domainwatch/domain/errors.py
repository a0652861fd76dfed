"""
Error taxonomy shared by services and the API layer.

Each error carries a short machine-readable code. The API maps the
classes onto HTTP status codes in one place (see main.py).
"""


class DomainWatchError(Exception):
    """Base class for all expected application errors."""

    code = "error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFoundError(DomainWatchError):
    """Record is absent, or exists but is owned by another account."""

    code = "not_found"


class ConflictError(DomainWatchError):
    """Duplicate payment confirmation or duplicate domain name."""

    code = "conflict"


class RejectedError(DomainWatchError):
    """Input is malformed or does not match the original order."""

    code = "rejected"


class TransientError(DomainWatchError):
    """External collaborator timed out or failed. Safe to retry."""

    code = "transient"


class InternalError(DomainWatchError):
    """Unexpected persistence failure."""

    code = "internal"

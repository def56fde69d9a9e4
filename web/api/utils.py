"""Shared API utilities."""

from meet.errors import (
    AuthorizationError,
    IneligibleEventError,
    NotFoundError,
    PersistenceError,
    QuotaExceeded,
    RegistrationConflictError,
    RegistrationError,
)

# Most specific first; the first isinstance match wins.
ERROR_STATUS = [
    (NotFoundError, 404),
    (AuthorizationError, 403),
    (IneligibleEventError, 422),
    (QuotaExceeded, 409),
    (RegistrationConflictError, 409),
    (PersistenceError, 503),
]


def error_status(exc: RegistrationError) -> int:
    """HTTP status for an engine error. Unknown subclasses are treated as bad requests."""
    for cls, status in ERROR_STATUS:
        if isinstance(exc, cls):
            return status
    return 400

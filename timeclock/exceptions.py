"""
Attendance exceptions.

Error taxonomy shared by the data-access layer, the reconciler and the
route layer.
"""

from typing import Any


QUOTA_ERROR_TOKENS = ("quota", "limit", "429", "rate_limit")


class AttendanceError(Exception):
    """Base exception for attendance errors."""
    pass


class RateLimitExceeded(AttendanceError):
    """
    Raised when the local call budget is exhausted.

    For reads this is only raised when no cached data (fresh or stale)
    is available for the requested dataset.
    """
    pass


class RemoteUnavailable(AttendanceError):
    """Raised when the remote store fails for reasons unrelated to quota."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class RemoteQuotaExceeded(RemoteUnavailable):
    """Raised when the remote store rejects a call for quota or rate reasons."""
    pass


class NotFound(AttendanceError):
    """Raised when no reconcilable record exists."""
    pass


class ValidationError(AttendanceError):
    """Raised when required caller fields are missing or malformed."""

    def __init__(self, message: str, field: str | None = None) -> None:
        self.field = field
        super().__init__(message)


class Degraded(AttendanceError):
    """
    Raised when a read could only be satisfied from stale data.

    The stale payload travels with the exception so callers that accept
    degraded data can still use it.
    """

    def __init__(self, message: str, payload: Any = None) -> None:
        self.payload = payload
        super().__init__(message)


def is_quota_error(error: BaseException) -> bool:
    """Check whether an error means the remote quota or rate limit was hit."""
    if isinstance(error, RemoteQuotaExceeded):
        return True
    message = str(error).lower()
    return any(token in message for token in QUOTA_ERROR_TOKENS)

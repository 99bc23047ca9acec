"""
Courier API exceptions.
"""

from .base import DeliverySyncException


class CourierException(DeliverySyncException):
    """Base exception for courier API errors."""
    pass


class AuthExpiredException(CourierException):
    """Raised when the courier rejects the account token (missing, expired or revoked)."""

    def __init__(self, account_id: int | None = None, reason: str = "token expired"):
        super().__init__(
            f"Courier authentication failed for account {account_id}: {reason}",
            details={'account_id': account_id, 'reason': reason}
        )
        self.account_id = account_id
        self.reason = reason


class CourierAPIException(CourierException):
    """Raised on transient courier failures: network errors, timeouts, 5xx or error envelopes."""

    def __init__(self, endpoint: str, reason: str, status_code: int | None = None):
        super().__init__(
            f"Courier API call '{endpoint}' failed: {reason}",
            details={'endpoint': endpoint, 'reason': reason, 'status_code': status_code}
        )
        self.endpoint = endpoint
        self.reason = reason
        self.status_code = status_code


class MalformedCourierResponseException(CourierException):
    """Raised for a courier record that cannot be parsed. Callers log it and skip the record."""

    def __init__(self, endpoint: str, reason: str):
        super().__init__(
            f"Malformed courier response from '{endpoint}': {reason}",
            details={'endpoint': endpoint, 'reason': reason}
        )
        self.endpoint = endpoint
        self.reason = reason

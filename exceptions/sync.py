"""
Sync orchestration exceptions.
"""

from .base import DeliverySyncException


class SyncException(DeliverySyncException):
    """Base exception for sync orchestration errors."""
    pass


class AccountNotFoundException(SyncException):
    """Raised when a delivery account is not found in database."""

    def __init__(self, account_id: int):
        super().__init__(
            f"Delivery account {account_id} not found",
            details={'account_id': account_id}
        )
        self.account_id = account_id


class InvalidSyncRequestException(SyncException):
    """Raised when a sync request is inconsistent, e.g. specific_account without account_id."""

    def __init__(self, reason: str):
        super().__init__(f"Invalid sync request: {reason}", details={'reason': reason})
        self.reason = reason

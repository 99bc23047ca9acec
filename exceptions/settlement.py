"""
Financial settlement exceptions.
"""

from .base import DeliverySyncException


class SettlementException(DeliverySyncException):
    """Base exception for settlement errors."""
    pass


class SettlementFailureException(SettlementException):
    """Raised when the settlement of an already split order cannot be computed or stored."""

    def __init__(self, order_id: int, reason: str):
        super().__init__(
            f"Settlement failed for order {order_id}: {reason}",
            details={'order_id': order_id, 'reason': reason}
        )
        self.order_id = order_id
        self.reason = reason

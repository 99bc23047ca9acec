"""
Order-related exceptions.
"""

from .base import DeliverySyncException


class OrderException(DeliverySyncException):
    """Base exception for order-related errors."""
    pass


class OrderNotFoundException(OrderException):
    """Raised when order is not found in database."""

    def __init__(self, order_id: int):
        super().__init__(
            f"Order {order_id} not found",
            details={'order_id': order_id}
        )
        self.order_id = order_id


class InvalidOrderStateException(OrderException):
    """Raised when order is in invalid state for requested operation."""

    def __init__(self, order_id: int, current_state: str, required_state: str):
        super().__init__(
            f"Order {order_id} is in state '{current_state}', required '{required_state}'",
            details={'order_id': order_id, 'current_state': current_state, 'required_state': required_state}
        )
        self.order_id = order_id
        self.current_state = current_state
        self.required_state = required_state


class InvalidPartialDeliverySelectionException(OrderException):
    """Raised when the operator selects items that do not belong to the order."""

    def __init__(self, order_id: int, unknown_item_ids: list[int]):
        super().__init__(
            f"Items {unknown_item_ids} do not belong to order {order_id}",
            details={'order_id': order_id, 'unknown_item_ids': unknown_item_ids}
        )
        self.order_id = order_id
        self.unknown_item_ids = unknown_item_ids


class PartialDeliveryAlreadyProcessedException(OrderException):
    """Raised when a split was already applied with a different item selection."""

    def __init__(self, order_id: int, applied_item_ids: list[int], requested_item_ids: list[int]):
        super().__init__(
            f"Partial delivery for order {order_id} was already processed "
            f"with items {applied_item_ids}, cannot apply {requested_item_ids}",
            details={'order_id': order_id, 'applied_item_ids': applied_item_ids,
                     'requested_item_ids': requested_item_ids}
        )
        self.order_id = order_id
        self.applied_item_ids = applied_item_ids
        self.requested_item_ids = requested_item_ids

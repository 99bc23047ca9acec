"""
Stock ledger exceptions.
"""

from .base import DeliverySyncException


class StockException(DeliverySyncException):
    """Base exception for stock ledger errors."""
    pass


class InventoryNotFoundException(StockException):
    """Raised when no inventory row exists for a product/variant."""

    def __init__(self, product_id: int, variant_id: int | None):
        super().__init__(
            f"No inventory for product {product_id} variant {variant_id}",
            details={'product_id': product_id, 'variant_id': variant_id}
        )
        self.product_id = product_id
        self.variant_id = variant_id


class InsufficientReservedStockException(StockException):
    """Raised when a release/return asks for more than is reserved (or a reserve for more than is available)."""

    def __init__(self, product_id: int, variant_id: int | None, requested: int, available: int):
        super().__init__(
            f"Insufficient stock for product {product_id} variant {variant_id}: "
            f"requested {requested}, available {available}",
            details={'product_id': product_id, 'variant_id': variant_id,
                     'requested': requested, 'available': available}
        )
        self.product_id = product_id
        self.variant_id = variant_id
        self.requested = requested
        self.available = available

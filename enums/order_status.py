from enum import Enum


class OrderStatus(Enum):
    """Canonical delivery state every courier status code collapses into."""
    PENDING = "pending"                        # Created, not yet picked up by the courier
    SHIPPED = "shipped"                        # In courier custody, between warehouses/offices
    DELIVERY = "delivery"                      # Out for delivery or held at the customer side
    DELIVERED = "delivered"                    # Customer accepted the shipment
    RETURNED = "returned"                      # Rejected/cancelled, on its way back
    RETURNED_IN_STOCK = "returned_in_stock"    # Back at the merchant, stock restored
    PARTIAL_DELIVERY = "partial_delivery"      # Some items accepted, needs manual split

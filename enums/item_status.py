from enum import Enum


class ItemStatus(Enum):
    PENDING = "pending"
    DELIVERED = "delivered"
    PENDING_RETURN = "pending_return"    # Rejected in a partial delivery, still reserved
    RETURNED = "returned"                # Back in sellable stock

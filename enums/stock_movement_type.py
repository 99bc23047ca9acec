from enum import Enum


class StockMovementType(Enum):
    RESERVE = "reserve"    # available -> reserved
    SELL = "sell"          # reserved -> sold
    RETURN = "return"      # reserved -> available

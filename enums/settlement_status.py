from enum import Enum


class SettlementStatus(Enum):
    PENDING = "pending"
    SETTLED = "settled"
    FAILED = "failed"

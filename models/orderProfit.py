from datetime import datetime

from pydantic import BaseModel
from sqlalchemy import Column, Integer, Float, DateTime, ForeignKey, func

from models.base import Base


class OrderProfit(Base):
    """Settlement record, at most one per order."""
    __tablename__ = 'order_profits'

    id = Column(Integer, primary_key=True)
    order_id = Column(Integer, ForeignKey('orders.id', ondelete='CASCADE'), nullable=False, unique=True)
    employee_id = Column(Integer, nullable=True)
    total_revenue = Column(Float, nullable=False, default=0.0)
    total_cost = Column(Float, nullable=False, default=0.0)
    delivery_fee_allocated = Column(Float, nullable=False, default=0.0)
    employee_profit = Column(Float, nullable=False, default=0.0)
    system_profit = Column(Float, nullable=False, default=0.0)
    created_at = Column(DateTime, default=func.now(), nullable=False)
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())


class OrderProfitDTO(BaseModel):
    id: int | None = None
    order_id: int | None = None
    employee_id: int | None = None
    total_revenue: float | None = None
    total_cost: float | None = None
    delivery_fee_allocated: float | None = None
    employee_profit: float | None = None
    system_profit: float | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class SettlementDTO(BaseModel):
    order_id: int
    delivered_item_ids: list[int] = []
    revenue: float = 0.0
    cost: float = 0.0
    delivery_fee_allocated: float = 0.0
    employee_profit: float = 0.0
    system_profit: float = 0.0

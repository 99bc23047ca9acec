from datetime import datetime

from pydantic import BaseModel
from sqlalchemy import Column, Integer, DateTime, func, ForeignKey, CheckConstraint, Index, Enum as SQLEnum

from enums.stock_movement_type import StockMovementType
from models.base import Base


class StockMovement(Base):
    """Per-item audit trail of stock ledger operations, one row per item and movement type."""
    __tablename__ = 'stock_movements'

    __table_args__ = (
        CheckConstraint('quantity > 0', name='ck_stock_movement_positive_quantity'),
        Index('ix_stock_movements_item_type', 'order_item_id', 'movement_type', unique=True),
    )

    id = Column(Integer, primary_key=True)
    order_item_id = Column(Integer, ForeignKey('order_items.id', ondelete='CASCADE'), nullable=False)
    product_id = Column(Integer, nullable=False)
    variant_id = Column(Integer, nullable=True)
    movement_type = Column(SQLEnum(StockMovementType), nullable=False)
    quantity = Column(Integer, nullable=False)
    created_at = Column(DateTime, default=func.now(), nullable=False)


class StockMovementDTO(BaseModel):
    id: int | None = None
    order_item_id: int | None = None
    product_id: int | None = None
    variant_id: int | None = None
    movement_type: StockMovementType | None = None
    quantity: int | None = None
    created_at: datetime | None = None

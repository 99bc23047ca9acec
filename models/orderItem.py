from datetime import datetime

from pydantic import BaseModel
from sqlalchemy import Column, Integer, DateTime, Float, func, ForeignKey, CheckConstraint, Index, Enum as SQLEnum

from enums.item_status import ItemStatus
from models.base import Base


class OrderItem(Base):
    __tablename__ = 'order_items'

    __table_args__ = (
        CheckConstraint('quantity > 0', name='ck_order_item_positive_quantity'),
        CheckConstraint('unit_price >= 0', name='ck_order_item_non_negative_price'),
        CheckConstraint('quantity_delivered >= 0 AND quantity_delivered <= quantity',
                        name='ck_order_item_delivered_within_quantity'),
        Index('ix_order_items_order_id', 'order_id'),
    )

    id = Column(Integer, primary_key=True)
    order_id = Column(Integer, ForeignKey('orders.id', ondelete='CASCADE'), nullable=False)
    product_id = Column(Integer, nullable=False)
    variant_id = Column(Integer, nullable=True)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Float, nullable=False)
    cost_price = Column(Float, nullable=False, default=0.0)
    item_status = Column(SQLEnum(ItemStatus), nullable=False, default=ItemStatus.PENDING)
    quantity_delivered = Column(Integer, nullable=False, default=0)
    delivered_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=func.now(), nullable=False)


class OrderItemDTO(BaseModel):
    id: int | None = None
    order_id: int | None = None
    product_id: int | None = None
    variant_id: int | None = None
    quantity: int | None = None
    unit_price: float | None = None
    cost_price: float | None = None
    item_status: ItemStatus | None = None
    quantity_delivered: int | None = None
    delivered_at: datetime | None = None
    created_at: datetime | None = None

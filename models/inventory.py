from datetime import datetime

from pydantic import BaseModel
from sqlalchemy import Column, Integer, DateTime, func, CheckConstraint, Index

from models.base import Base


class Inventory(Base):
    __tablename__ = 'inventory'

    # available + reserved + sold is only changed by restocking, never by order flows
    __table_args__ = (
        CheckConstraint('available_quantity >= 0', name='ck_inventory_available_non_negative'),
        CheckConstraint('reserved_quantity >= 0', name='ck_inventory_reserved_non_negative'),
        CheckConstraint('sold_quantity >= 0', name='ck_inventory_sold_non_negative'),
        Index('ix_inventory_product_variant', 'product_id', 'variant_id', unique=True),
    )

    id = Column(Integer, primary_key=True)
    product_id = Column(Integer, nullable=False)
    variant_id = Column(Integer, nullable=True)
    available_quantity = Column(Integer, nullable=False, default=0)
    reserved_quantity = Column(Integer, nullable=False, default=0)
    sold_quantity = Column(Integer, nullable=False, default=0)
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())


class InventoryDTO(BaseModel):
    id: int | None = None
    product_id: int | None = None
    variant_id: int | None = None
    available_quantity: int | None = None
    reserved_quantity: int | None = None
    sold_quantity: int | None = None
    updated_at: datetime | None = None

    @property
    def total_quantity(self) -> int:
        return (self.available_quantity or 0) + (self.reserved_quantity or 0) + (self.sold_quantity or 0)

from datetime import datetime

from pydantic import BaseModel
from sqlalchemy import Column, Integer, Float, DateTime, ForeignKey, Text, String, func

from enums.order_status import OrderStatus
from enums.settlement_status import SettlementStatus
from models.base import Base


class PartialDeliveryHistory(Base):
    __tablename__ = 'partial_delivery_history'

    id = Column(Integer, primary_key=True)
    order_id = Column(Integer, ForeignKey('orders.id', ondelete='CASCADE'), nullable=False, unique=True)
    # Item snapshots (JSON): [{"order_item_id": 1, "product_id": 7, "variant_id": null, "quantity": 2, "unit_price": 10000.0}]
    delivered_items_json = Column(Text, nullable=False)
    undelivered_items_json = Column(Text, nullable=False)
    expected_price = Column(Float, nullable=False)
    final_price = Column(Float, nullable=False)
    discount = Column(Float, nullable=False, default=0.0)
    courier_price = Column(Float, nullable=True)
    processed_by = Column(String(255), nullable=True)
    processed_at = Column(DateTime, default=func.now(), nullable=False)


class PartialDeliveryHistoryDTO(BaseModel):
    id: int | None = None
    order_id: int | None = None
    delivered_items_json: str | None = None
    undelivered_items_json: str | None = None
    expected_price: float | None = None
    final_price: float | None = None
    discount: float | None = None
    courier_price: float | None = None
    processed_by: str | None = None
    processed_at: datetime | None = None


class PartialDeliveryResultDTO(BaseModel):
    order_id: int
    status: OrderStatus
    delivered_item_ids: list[int] = []
    returned_item_ids: list[int] = []
    expected_price: float = 0.0
    final_price: float = 0.0
    discount: float = 0.0
    courier_price: float | None = None
    already_processed: bool = False
    settlement_status: SettlementStatus | None = None
    warnings: list[str] = []

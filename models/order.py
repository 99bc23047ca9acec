from datetime import datetime

from pydantic import BaseModel
from sqlalchemy import Column, Integer, Float, DateTime, ForeignKey, String, func, CheckConstraint, Enum as SQLEnum, Text, Boolean, Index

from enums.order_status import OrderStatus
from enums.settlement_status import SettlementStatus
from models.base import Base


class Order(Base):
    __tablename__ = 'orders'

    id = Column(Integer, primary_key=True, unique=True)
    order_number = Column(String(64), nullable=False, unique=True)
    delivery_account_id = Column(Integer, ForeignKey('delivery_accounts.id'), nullable=True)
    employee_id = Column(Integer, nullable=True)

    # External references known to the courier
    delivery_partner_order_id = Column(String(64), nullable=True)
    tracking_number = Column(String(64), nullable=True)
    qr_id = Column(String(64), nullable=True)

    # Delivery state
    status = Column(SQLEnum(OrderStatus), nullable=False, default=OrderStatus.PENDING)
    delivery_status_code = Column(String(16), nullable=True)   # Last code reported by the courier
    delivery_status_text = Column(Text, nullable=True)         # Last free-text status reported by the courier
    requires_manual_processing = Column(Boolean, nullable=False, default=False)
    status_changed_at = Column(DateTime, nullable=True)
    last_synced_at = Column(DateTime, nullable=True)

    # Totals
    total_amount = Column(Float, nullable=False, default=0.0)   # Sum of items, without delivery fee
    delivery_fee = Column(Float, nullable=False, default=0.0)
    discount = Column(Float, nullable=False, default=0.0)
    final_amount = Column(Float, nullable=False, default=0.0)   # Amount collected from the customer

    # Partial delivery split & settlement
    partial_delivery_processed_at = Column(DateTime, nullable=True)
    settlement_status = Column(SQLEnum(SettlementStatus), nullable=True)

    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint('total_amount >= 0', name='check_order_total_amount_non_negative'),
        CheckConstraint('delivery_fee >= 0', name='check_order_delivery_fee_non_negative'),
        Index('ix_orders_account_synced', 'delivery_account_id', 'last_synced_at'),
    )


class OrderDTO(BaseModel):
    id: int | None = None
    order_number: str | None = None
    delivery_account_id: int | None = None
    employee_id: int | None = None
    delivery_partner_order_id: str | None = None
    tracking_number: str | None = None
    qr_id: str | None = None
    status: OrderStatus | None = None
    delivery_status_code: str | None = None
    delivery_status_text: str | None = None
    requires_manual_processing: bool | None = None
    status_changed_at: datetime | None = None
    last_synced_at: datetime | None = None
    total_amount: float | None = None
    delivery_fee: float | None = None
    discount: float | None = None
    final_amount: float | None = None
    partial_delivery_processed_at: datetime | None = None
    settlement_status: SettlementStatus | None = None
    notes: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

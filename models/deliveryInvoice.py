from sqlalchemy import Column, Integer, Float, DateTime, ForeignKey, String, Text, func, Index

from models.base import Base


class DeliveryInvoice(Base):
    """Courier settlement invoice, immutable once ingested apart from courier-side updates."""
    __tablename__ = 'delivery_invoices'

    __table_args__ = (
        Index('ix_delivery_invoices_partner_external', 'partner_name', 'external_id', unique=True),
        Index('ix_delivery_invoices_account', 'delivery_account_id'),
    )

    id = Column(Integer, primary_key=True)
    partner_name = Column(String(50), nullable=False)
    external_id = Column(String(64), nullable=False)
    delivery_account_id = Column(Integer, ForeignKey('delivery_accounts.id'), nullable=False)
    amount = Column(Float, nullable=False, default=0.0)
    delivery_price = Column(Float, nullable=False, default=0.0)
    orders_count = Column(Integer, nullable=False, default=0)
    status = Column(String(100), nullable=True)
    invoice_date = Column(DateTime, nullable=True)
    updated_at_remote = Column(DateTime, nullable=True)
    # Raw courier payload (JSON) kept for audits
    raw_data = Column(Text, nullable=True)
    synced_at = Column(DateTime, default=func.now(), nullable=False)

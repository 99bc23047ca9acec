from datetime import datetime

from pydantic import BaseModel
from sqlalchemy import Column, Integer, DateTime, ForeignKey, func

from models.base import Base


class SyncCursor(Base):
    __tablename__ = 'sync_cursors'

    id = Column(Integer, primary_key=True)
    delivery_account_id = Column(Integer, ForeignKey('delivery_accounts.id'), nullable=False, unique=True)
    last_smart_sync_at = Column(DateTime, nullable=True)   # Last completed cycle, drives the debounce
    last_invoice_date = Column(DateTime, nullable=True)    # Newest invoice timestamp ingested, never decreases
    created_at = Column(DateTime, default=func.now(), nullable=False)
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())


class SyncCursorDTO(BaseModel):
    id: int | None = None
    delivery_account_id: int | None = None
    last_smart_sync_at: datetime | None = None
    last_invoice_date: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

from datetime import datetime

from pydantic import BaseModel
from sqlalchemy import Column, Integer, String, DateTime, Boolean, Text, func, Index

from models.base import Base


class DeliveryAccount(Base):
    __tablename__ = 'delivery_accounts'

    __table_args__ = (
        Index('ix_delivery_accounts_partner_username', 'partner_name', 'username', unique=True),
    )

    id = Column(Integer, primary_key=True)
    partner_name = Column(String(50), nullable=False, default='alwaseet')
    username = Column(String(255), nullable=False)
    token = Column(Text, nullable=True)              # Courier merchant login token
    token_expires_at = Column(DateTime, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    employee_id = Column(Integer, nullable=True)     # Employee owning this courier login
    created_at = Column(DateTime, default=func.now(), nullable=False)


class DeliveryAccountDTO(BaseModel):
    id: int | None = None
    partner_name: str | None = None
    username: str | None = None
    token: str | None = None
    token_expires_at: datetime | None = None
    is_active: bool | None = None
    employee_id: int | None = None
    created_at: datetime | None = None

    def has_valid_token(self, now: datetime) -> bool:
        return bool(self.token) and self.token_expires_at is not None and self.token_expires_at > now

from datetime import datetime

from pydantic import BaseModel, model_validator
from sqlalchemy import Column, Integer, Float, DateTime, String, Text, Boolean, func

from enums.sync_mode import SyncMode
from models.base import Base


class SyncRun(Base):
    """Append-only log, one row per orchestrator invocation."""
    __tablename__ = 'sync_runs'

    id = Column(Integer, primary_key=True)
    mode = Column(String(32), nullable=False)
    force_refresh = Column(Boolean, nullable=False, default=False)
    started_at = Column(DateTime, nullable=False)
    finished_at = Column(DateTime, nullable=False)
    duration_seconds = Column(Float, nullable=False, default=0.0)
    accounts_processed = Column(Integer, nullable=False, default=0)
    invoices_synced = Column(Integer, nullable=False, default=0)
    orders_updated = Column(Integer, nullable=False, default=0)
    # JSON lists of account refs / error entries
    needs_login_json = Column(Text, nullable=True)
    errors_json = Column(Text, nullable=True)
    success = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=func.now(), nullable=False)


class SyncRunDTO(BaseModel):
    id: int | None = None
    mode: str | None = None
    force_refresh: bool | None = None
    started_at: datetime | None = None
    finished_at: datetime | None = None
    duration_seconds: float | None = None
    accounts_processed: int | None = None
    invoices_synced: int | None = None
    orders_updated: int | None = None
    needs_login_json: str | None = None
    errors_json: str | None = None
    success: bool | None = None
    created_at: datetime | None = None


class SyncRequestDTO(BaseModel):
    mode: SyncMode = SyncMode.SMART
    account_id: int | None = None
    force_refresh: bool = False
    sync_invoices: bool = True
    sync_orders: bool = True

    @model_validator(mode='after')
    def _account_required_for_specific_mode(self):
        if self.mode == SyncMode.SPECIFIC_ACCOUNT and self.account_id is None:
            raise ValueError("account_id is required for specific_account sync")
        return self

    @property
    def is_forced(self) -> bool:
        # A comprehensive sweep always ignores debounce and cursors
        return self.force_refresh or self.mode == SyncMode.COMPREHENSIVE


class AccountRefDTO(BaseModel):
    account_id: int
    partner_name: str | None = None
    username: str | None = None


class SyncErrorDTO(BaseModel):
    account_id: int | None = None
    error_type: str
    message: str


class AccountSyncOutcomeDTO(BaseModel):
    """Result of one account inside a sync run."""
    account: AccountRefDTO
    invoices_synced: int = 0
    orders_updated: int = 0
    needs_login: bool = False
    skipped: bool = False
    error: SyncErrorDTO | None = None


class SyncResultDTO(BaseModel):
    run_id: int | None = None
    mode: SyncMode = SyncMode.SMART
    accounts_processed: int = 0
    invoices_synced: int = 0
    orders_updated: int = 0
    needs_login: list[AccountRefDTO] = []
    skipped: list[AccountRefDTO] = []
    errors: list[SyncErrorDTO] = []
    duration_seconds: float = 0.0

    @property
    def success(self) -> bool:
        return not self.errors

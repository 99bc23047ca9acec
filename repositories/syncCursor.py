from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

from db import session_execute, session_flush
from models.syncCursor import SyncCursor, SyncCursorDTO


class SyncCursorRepository:

    @staticmethod
    async def get_by_account_id(account_id: int, session: Session | AsyncSession) -> SyncCursorDTO | None:
        stmt = select(SyncCursor).where(SyncCursor.delivery_account_id == account_id)
        result = await session_execute(stmt, session)
        cursor = result.scalar_one_or_none()
        if cursor:
            return SyncCursorDTO.model_validate(cursor, from_attributes=True)
        return None

    @staticmethod
    async def get_or_create(account_id: int, session: Session | AsyncSession) -> SyncCursorDTO:
        cursor = await SyncCursorRepository.get_by_account_id(account_id, session)
        if cursor is not None:
            return cursor
        new_cursor = SyncCursor(delivery_account_id=account_id)
        session.add(new_cursor)
        await session_flush(session)
        return SyncCursorDTO.model_validate(new_cursor, from_attributes=True)

    @staticmethod
    async def update(cursor_dto: SyncCursorDTO, session: Session | AsyncSession) -> None:
        stmt = update(SyncCursor).where(SyncCursor.id == cursor_dto.id).values(
            last_smart_sync_at=cursor_dto.last_smart_sync_at,
            last_invoice_date=cursor_dto.last_invoice_date
        )
        await session_execute(stmt, session)

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

from db import session_execute, session_flush
from models.syncRun import SyncRun, SyncRunDTO


class SyncRunRepository:

    @staticmethod
    async def create(sync_run_dto: SyncRunDTO, session: Session | AsyncSession) -> int:
        sync_run = SyncRun(**sync_run_dto.model_dump(exclude_none=True))
        session.add(sync_run)
        await session_flush(session)
        return sync_run.id

    @staticmethod
    async def get_latest(session: Session | AsyncSession, limit: int = 10) -> list[SyncRunDTO]:
        stmt = select(SyncRun).order_by(SyncRun.id.desc()).limit(limit)
        result = await session_execute(stmt, session)
        return [SyncRunDTO.model_validate(run, from_attributes=True) for run in result.scalars().all()]

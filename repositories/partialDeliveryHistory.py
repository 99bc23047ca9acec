from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

from db import session_execute, session_flush
from models.partialDeliveryHistory import PartialDeliveryHistory, PartialDeliveryHistoryDTO


class PartialDeliveryHistoryRepository:

    @staticmethod
    async def create(history_dto: PartialDeliveryHistoryDTO, session: Session | AsyncSession) -> int:
        history = PartialDeliveryHistory(**history_dto.model_dump(exclude_none=True))
        session.add(history)
        await session_flush(session)
        return history.id

    @staticmethod
    async def get_by_order_id(order_id: int, session: Session | AsyncSession) -> PartialDeliveryHistoryDTO | None:
        stmt = select(PartialDeliveryHistory).where(PartialDeliveryHistory.order_id == order_id)
        result = await session_execute(stmt, session)
        history = result.scalar_one_or_none()
        if history:
            return PartialDeliveryHistoryDTO.model_validate(history, from_attributes=True)
        return None

    @staticmethod
    async def exists_for_order(order_id: int, session: Session | AsyncSession) -> bool:
        stmt = select(PartialDeliveryHistory.id).where(PartialDeliveryHistory.order_id == order_id)
        result = await session_execute(stmt, session)
        return result.scalar_one_or_none() is not None

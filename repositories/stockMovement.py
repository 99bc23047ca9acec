from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

from db import session_execute, session_flush
from enums.stock_movement_type import StockMovementType
from models.stockMovement import StockMovement, StockMovementDTO


class StockMovementRepository:

    @staticmethod
    async def create(movement_dto: StockMovementDTO, session: Session | AsyncSession) -> int:
        movement = StockMovement(**movement_dto.model_dump(exclude_none=True))
        session.add(movement)
        await session_flush(session)
        return movement.id

    @staticmethod
    async def exists(order_item_id: int, movement_type: StockMovementType, session: Session | AsyncSession) -> bool:
        stmt = select(StockMovement.id).where(
            StockMovement.order_item_id == order_item_id,
            StockMovement.movement_type == movement_type
        )
        result = await session_execute(stmt, session)
        return result.scalar_one_or_none() is not None

    @staticmethod
    async def get_by_order_item_id(order_item_id: int, session: Session | AsyncSession) -> list[StockMovementDTO]:
        stmt = select(StockMovement).where(StockMovement.order_item_id == order_item_id).order_by(StockMovement.id)
        result = await session_execute(stmt, session)
        return [StockMovementDTO.model_validate(movement, from_attributes=True)
                for movement in result.scalars().all()]

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

from db import session_execute, session_flush
from models.orderProfit import OrderProfit, OrderProfitDTO


class OrderProfitRepository:

    @staticmethod
    async def upsert(profit_dto: OrderProfitDTO, session: Session | AsyncSession) -> int:
        """Insert or overwrite the settlement record of an order (one per order_id)."""
        stmt = select(OrderProfit).where(OrderProfit.order_id == profit_dto.order_id)
        result = await session_execute(stmt, session)
        profit = result.scalar_one_or_none()
        values = profit_dto.model_dump(exclude_none=True, exclude={'id', 'created_at', 'updated_at'})
        if profit is None:
            profit = OrderProfit(**values)
            session.add(profit)
        else:
            for field, value in values.items():
                setattr(profit, field, value)
        await session_flush(session)
        return profit.id

    @staticmethod
    async def get_by_order_id(order_id: int, session: Session | AsyncSession) -> OrderProfitDTO | None:
        stmt = select(OrderProfit).where(OrderProfit.order_id == order_id)
        result = await session_execute(stmt, session)
        profit = result.scalar_one_or_none()
        if profit:
            return OrderProfitDTO.model_validate(profit, from_attributes=True)
        return None

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

from db import session_execute, session_flush
from models.orderItem import OrderItem, OrderItemDTO


class OrderItemRepository:

    @staticmethod
    async def create(order_item_dto: OrderItemDTO, session: Session | AsyncSession) -> int:
        order_item = OrderItem(**order_item_dto.model_dump(exclude_none=True))
        session.add(order_item)
        await session_flush(session)
        return order_item.id

    @staticmethod
    async def get_by_order_id(order_id: int, session: Session | AsyncSession) -> list[OrderItemDTO]:
        stmt = select(OrderItem).where(OrderItem.order_id == order_id).order_by(OrderItem.id)
        result = await session_execute(stmt, session)
        return [OrderItemDTO.model_validate(item, from_attributes=True) for item in result.scalars().all()]

    @staticmethod
    async def get_by_ids(item_ids: list[int], session: Session | AsyncSession) -> list[OrderItemDTO]:
        if not item_ids:
            return []
        stmt = select(OrderItem).where(OrderItem.id.in_(item_ids)).order_by(OrderItem.id)
        result = await session_execute(stmt, session)
        return [OrderItemDTO.model_validate(item, from_attributes=True) for item in result.scalars().all()]

    @staticmethod
    async def update_fields(order_item_id: int, values: dict, session: Session | AsyncSession) -> None:
        stmt = update(OrderItem).where(OrderItem.id == order_item_id).values(**values)
        await session_execute(stmt, session)

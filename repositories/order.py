from datetime import datetime
import logging

from sqlalchemy import select, update, or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

from db import session_execute, session_flush
from enums.order_status import OrderStatus
from enums.settlement_status import SettlementStatus
from models.order import Order, OrderDTO
from utils.delivery_status_registry import DeliveryStatusRegistry
from utils.order_state_machine import OrderStateMachine

logger = logging.getLogger(__name__)


class OrderRepository:

    @staticmethod
    async def create(order_dto: OrderDTO, session: Session | AsyncSession) -> int:
        order = Order(**order_dto.model_dump(exclude_none=True))
        session.add(order)
        await session_flush(session)
        return order.id

    @staticmethod
    async def get_by_id(order_id: int, session: Session | AsyncSession) -> OrderDTO | None:
        stmt = select(Order).where(Order.id == order_id)
        result = await session_execute(stmt, session)
        order = result.scalar_one_or_none()
        if order is not None:
            return OrderDTO.model_validate(order, from_attributes=True)
        return None

    @staticmethod
    async def get_trackable_by_account(account_id: int, limit: int,
                                       session: Session | AsyncSession) -> list[OrderDTO]:
        """
        Bounded slice of an account's orders still awaiting courier updates.

        Least recently synced first (never synced before anything else), so
        successive cycles rotate through the whole set.
        """
        final_statuses = [status for status in OrderStatus if OrderStateMachine.is_final_status(status)]
        terminal_codes = [code for code in DeliveryStatusRegistry.all_codes()
                          if DeliveryStatusRegistry.is_terminal_code(code)]
        stmt = (
            select(Order)
            .where(
                Order.delivery_account_id == account_id,
                Order.status.notin_(final_statuses),
                or_(Order.delivery_status_code.is_(None), Order.delivery_status_code.notin_(terminal_codes)),
            )
            .order_by(Order.last_synced_at.is_not(None), Order.last_synced_at, Order.id)
            .limit(limit)
        )
        result = await session_execute(stmt, session)
        return [OrderDTO.model_validate(order, from_attributes=True) for order in result.scalars().all()]

    @staticmethod
    async def update_fields(order_id: int, values: dict, session: Session | AsyncSession) -> None:
        stmt = update(Order).where(Order.id == order_id).values(**values)
        await session_execute(stmt, session)

    @staticmethod
    async def claim_partial_delivery(order_id: int, processed_at: datetime,
                                     session: Session | AsyncSession) -> bool:
        """
        Optimistic guard: mark the split as applied unless another writer already did.

        Returns:
            True if this caller won the claim
        """
        stmt = (
            update(Order)
            .where(Order.id == order_id, Order.partial_delivery_processed_at.is_(None))
            .values(partial_delivery_processed_at=processed_at)
        )
        result = await session_execute(stmt, session)
        return result.rowcount == 1

    @staticmethod
    async def get_pending_settlements(limit: int, session: Session | AsyncSession) -> list[OrderDTO]:
        stmt = (
            select(Order)
            .where(
                Order.partial_delivery_processed_at.is_not(None),
                Order.settlement_status.in_([SettlementStatus.PENDING, SettlementStatus.FAILED]),
            )
            .order_by(Order.partial_delivery_processed_at)
            .limit(limit)
        )
        result = await session_execute(stmt, session)
        return [OrderDTO.model_validate(order, from_attributes=True) for order in result.scalars().all()]

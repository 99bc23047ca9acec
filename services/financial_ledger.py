import logging
import math

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

import config
from exceptions.order import OrderNotFoundException, InvalidPartialDeliverySelectionException
from models.orderProfit import SettlementDTO
from repositories.order import OrderRepository
from repositories.orderItem import OrderItemRepository

logger = logging.getLogger(__name__)


class FinancialLedgerService:

    @staticmethod
    def split_profit(revenue: float, cost: float, delivery_fee: float) -> tuple[float, float]:
        """
        Split the margin of delivered goods between employee and system.

        The delivery fee is passed through to the courier and is not margin.

        Returns:
            (employee_profit, system_profit)
        """
        margin = revenue - delivery_fee - cost
        employee_profit = float(math.floor(max(0.0, margin) * config.EMPLOYEE_PROFIT_SHARE_PERCENT / 100))
        return employee_profit, margin - employee_profit

    @staticmethod
    async def compute_settlement(order_id: int, delivered_item_ids: list[int], final_price: float,
                                 session: Session | AsyncSession) -> SettlementDTO:
        """
        Compute revenue and profit shares of the delivered part of an order.

        Args:
            order_id: Order being settled
            delivered_item_ids: Items the customer accepted
            final_price: Amount actually collected from the customer

        Returns:
            SettlementDTO; the full delivery fee is allocated when at least one item was delivered
        """
        order = await OrderRepository.get_by_id(order_id, session)
        if order is None:
            raise OrderNotFoundException(order_id)

        items = await OrderItemRepository.get_by_ids(delivered_item_ids, session)
        foreign = sorted({item.id for item in items if item.order_id != order_id}
                         | (set(delivered_item_ids) - {item.id for item in items}))
        if foreign:
            raise InvalidPartialDeliverySelectionException(order_id, foreign)

        cost = sum((item.cost_price or 0.0) * item.quantity for item in items)
        delivery_fee = (order.delivery_fee or 0.0) if items else 0.0
        employee_profit, system_profit = FinancialLedgerService.split_profit(final_price, cost, delivery_fee)

        logger.debug(f"[Settlement] Order {order_id}: revenue={final_price}, cost={cost}, fee={delivery_fee}, "
                     f"employee={employee_profit}, system={system_profit}")
        return SettlementDTO(
            order_id=order_id,
            delivered_item_ids=[item.id for item in items],
            revenue=final_price,
            cost=cost,
            delivery_fee_allocated=delivery_fee,
            employee_profit=employee_profit,
            system_profit=system_profit,
        )

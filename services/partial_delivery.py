"""
Partial Delivery Splitter

Resolves courier status 21 (delivered, part of the goods taken back) once an
operator has said which items the customer kept:

- selected items become delivered and their reserved stock is sold
- the remaining items become pending_return and stay reserved until the
  courier confirms the return to the merchant (status 17)
- the order's final amount and discount are recomputed and a history row is written

The split is one transaction guarded by Order.partial_delivery_processed_at.
Settlement runs afterwards as a separate step; its failure never undoes the split.
"""

import json
import logging

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

import config
from db import session_commit, session_rollback
from enums.item_status import ItemStatus
from enums.order_status import OrderStatus
from enums.settlement_status import SettlementStatus
from exceptions.order import (OrderNotFoundException, InvalidOrderStateException,
                              InvalidPartialDeliverySelectionException, PartialDeliveryAlreadyProcessedException)
from models.order import OrderDTO
from models.orderItem import OrderItemDTO
from models.partialDeliveryHistory import PartialDeliveryHistoryDTO, PartialDeliveryResultDTO
from repositories.order import OrderRepository
from repositories.orderItem import OrderItemRepository
from repositories.partialDeliveryHistory import PartialDeliveryHistoryRepository
from services.settlement import SettlementService
from services.stock_ledger import StockLedgerService
from utils.datetime_utils import utcnow
from utils.delivery_status_registry import PARTIAL_DELIVERY_CODE
from utils.order_state_machine import OrderStateMachine

logger = logging.getLogger(__name__)


class PartialDeliverySplitter:

    @staticmethod
    def compute_expected_price(selected_items: list[OrderItemDTO], delivery_fee: float) -> float:
        """Price of the kept goods plus the delivery fee; 0 when the customer kept nothing."""
        if not selected_items:
            return 0.0
        return sum(item.unit_price * item.quantity for item in selected_items) + (delivery_fee or 0.0)

    @staticmethod
    def snapshot(items: list[OrderItemDTO]) -> str:
        return json.dumps([{
            'order_item_id': item.id,
            'product_id': item.product_id,
            'variant_id': item.variant_id,
            'quantity': item.quantity,
            'unit_price': item.unit_price,
        } for item in items])

    @staticmethod
    async def apply(order_id: int, selected_item_ids: list[int], session: Session | AsyncSession,
                    final_price: float | None = None, processed_by: str | None = None) -> PartialDeliveryResultDTO:
        """
        Apply an operator's item selection to a partially delivered order.

        Args:
            order_id: Order reported by the courier with status 21
            selected_item_ids: Items the customer kept (may be empty)
            final_price: Amount actually collected, defaults to the expected price
            processed_by: Operator identifier for the audit trail

        Returns:
            PartialDeliveryResultDTO; already_processed=True when the same selection was applied before

        Raises:
            OrderNotFoundException, InvalidOrderStateException,
            InvalidPartialDeliverySelectionException, PartialDeliveryAlreadyProcessedException
        """
        order = await OrderRepository.get_by_id(order_id, session)
        if order is None:
            raise OrderNotFoundException(order_id)

        items = await OrderItemRepository.get_by_order_id(order_id, session)
        selected_ids = set(selected_item_ids)
        unknown_ids = sorted(selected_ids - {item.id for item in items})
        if unknown_ids:
            raise InvalidPartialDeliverySelectionException(order_id, unknown_ids)

        if order.partial_delivery_processed_at is not None:
            return await PartialDeliverySplitter._already_processed(order, items, selected_ids, session)

        if order.delivery_status_code != PARTIAL_DELIVERY_CODE or order.status != OrderStatus.PARTIAL_DELIVERY:
            raise InvalidOrderStateException(
                order_id,
                f"{order.status.value} (code {order.delivery_status_code})",
                f"{OrderStatus.PARTIAL_DELIVERY.value} (code {PARTIAL_DELIVERY_CODE})"
            )

        now = utcnow()
        try:
            if not await OrderRepository.claim_partial_delivery(order_id, now, session):
                # Another operator won the race; compare against what they applied
                await session_rollback(session)
                order = await OrderRepository.get_by_id(order_id, session)
                items = await OrderItemRepository.get_by_order_id(order_id, session)
                return await PartialDeliverySplitter._already_processed(order, items, selected_ids, session)

            result = await PartialDeliverySplitter._split(order, items, selected_ids, final_price,
                                                          processed_by, now, session)
            await session_commit(session)
        except Exception:
            await session_rollback(session)
            raise

        logger.info(f"[PartialDelivery] Order {order_id} split by {processed_by or 'operator'}: "
                    f"delivered={result.delivered_item_ids}, returned={result.returned_item_ids}, "
                    f"final={result.final_price}, discount={result.discount}")

        result.settlement_status, reason = await SettlementService.try_settle(order_id, session)
        if reason is not None:
            result.warnings.append(f"Settlement failed and will be retried: {reason}")
        return result

    @staticmethod
    async def _split(order: OrderDTO, items: list[OrderItemDTO], selected_ids: set[int], final_price: float | None,
                     processed_by: str | None, now, session: Session | AsyncSession) -> PartialDeliveryResultDTO:
        delivered = [item for item in items if item.id in selected_ids]
        returned = [item for item in items if item.id not in selected_ids]

        for item in delivered:
            if item.item_status == ItemStatus.PENDING:
                await StockLedgerService.release_reserved_item(item.product_id, item.variant_id, item.quantity,
                                                               item.id, session)
            await OrderItemRepository.update_fields(item.id, {
                'item_status': ItemStatus.DELIVERED,
                'quantity_delivered': item.quantity,
                'delivered_at': now,
            }, session)
        for item in returned:
            await OrderItemRepository.update_fields(item.id, {'item_status': ItemStatus.PENDING_RETURN}, session)

        expected = PartialDeliverySplitter.compute_expected_price(delivered, order.delivery_fee)
        final = expected if final_price is None else final_price
        discount = expected - final
        courier_price = order.final_amount

        warnings = []
        if courier_price and abs(expected - courier_price) > config.PARTIAL_DELIVERY_PRICE_TOLERANCE:
            warnings.append(f"Expected price {expected} differs from courier price {courier_price}")
            logger.warning(f"[PartialDelivery] Order {order.id}: expected price {expected} "
                           f"differs from courier price {courier_price}")

        new_status = OrderStatus.PARTIAL_DELIVERY if returned else OrderStatus.DELIVERED
        values = {
            'final_amount': final,
            'discount': discount,
            'requires_manual_processing': False,
            'settlement_status': SettlementStatus.PENDING,
        }
        if new_status != order.status:
            OrderStateMachine.validate_and_log_transition(order.id, order.status, new_status,
                                                          operator=processed_by or "operator")
            values['status'] = new_status
            values['status_changed_at'] = now
        await OrderRepository.update_fields(order.id, values, session)

        await PartialDeliveryHistoryRepository.create(PartialDeliveryHistoryDTO(
            order_id=order.id,
            delivered_items_json=PartialDeliverySplitter.snapshot(delivered),
            undelivered_items_json=PartialDeliverySplitter.snapshot(returned),
            expected_price=expected,
            final_price=final,
            discount=discount,
            courier_price=courier_price,
            processed_by=processed_by,
            processed_at=now,
        ), session)

        return PartialDeliveryResultDTO(
            order_id=order.id,
            status=new_status,
            delivered_item_ids=[item.id for item in delivered],
            returned_item_ids=[item.id for item in returned],
            expected_price=expected,
            final_price=final,
            discount=discount,
            courier_price=courier_price,
            warnings=warnings,
        )

    @staticmethod
    async def _already_processed(order: OrderDTO, items: list[OrderItemDTO], selected_ids: set[int],
                                 session: Session | AsyncSession) -> PartialDeliveryResultDTO:
        history = await PartialDeliveryHistoryRepository.get_by_order_id(order.id, session)
        if history is not None:
            applied_ids = sorted(entry['order_item_id'] for entry in json.loads(history.delivered_items_json))
        else:
            applied_ids = sorted(item.id for item in items if item.item_status == ItemStatus.DELIVERED)

        if set(applied_ids) != selected_ids:
            raise PartialDeliveryAlreadyProcessedException(order.id, applied_ids, sorted(selected_ids))

        logger.info(f"[PartialDelivery] Order {order.id} already split with the same selection, nothing to do")
        return PartialDeliveryResultDTO(
            order_id=order.id,
            status=order.status,
            delivered_item_ids=applied_ids,
            returned_item_ids=[item.id for item in items if item.id not in selected_ids],
            expected_price=history.expected_price if history else 0.0,
            final_price=history.final_price if history else (order.final_amount or 0.0),
            discount=history.discount if history else (order.discount or 0.0),
            courier_price=history.courier_price if history else None,
            already_processed=True,
            settlement_status=order.settlement_status,
        )

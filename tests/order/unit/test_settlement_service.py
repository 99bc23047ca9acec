"""
Unit tests for FinancialLedgerService and SettlementService.
"""

from datetime import datetime
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import func, select

from enums.item_status import ItemStatus
from enums.order_status import OrderStatus
from enums.settlement_status import SettlementStatus
from exceptions.order import InvalidPartialDeliverySelectionException, OrderNotFoundException
from models.orderProfit import OrderProfit
from repositories.order import OrderRepository
from repositories.orderItem import OrderItemRepository
from repositories.orderProfit import OrderProfitRepository
from services.financial_ledger import FinancialLedgerService
from services.settlement import SettlementService


@pytest.fixture
def split_order(make_order, make_account):
    """Split order, item A delivered and item B on its way back."""
    return make_order(
        account=make_account(employee_id=7),
        status=OrderStatus.PARTIAL_DELIVERY, delivery_status_code="21", final_amount=23000.0,
        partial_delivery_processed_at=datetime(2024, 6, 1), settlement_status=SettlementStatus.PENDING,
        items=[
            {"product_id": 1, "quantity": 2, "unit_price": 10000.0, "cost_price": 6000.0,
             "item_status": ItemStatus.DELIVERED},
            {"product_id": 2, "quantity": 1, "unit_price": 5000.0, "cost_price": 2000.0,
             "item_status": ItemStatus.PENDING_RETURN},
        ]
    )


class TestSplitProfit:

    def test_margin_is_shared(self):
        assert FinancialLedgerService.split_profit(23000.0, 12000.0, 3000.0) == (4000.0, 4000.0)

    def test_employee_share_is_floored(self):
        employee, system = FinancialLedgerService.split_profit(1001.0, 0.0, 0.0)

        assert employee == 500.0
        assert system == 501.0

    def test_loss_is_carried_by_system(self):
        assert FinancialLedgerService.split_profit(1000.0, 5000.0, 0.0) == (0.0, -4000.0)


class TestComputeSettlement:

    @pytest.mark.asyncio
    async def test_delivered_items_only(self, session, split_order):
        items = await OrderItemRepository.get_by_order_id(split_order.id, session)

        settlement = await FinancialLedgerService.compute_settlement(split_order.id, [items[0].id], 23000.0,
                                                                     session)

        assert settlement.cost == 12000.0
        assert settlement.delivery_fee_allocated == 3000.0
        assert settlement.employee_profit == 4000.0

    @pytest.mark.asyncio
    async def test_nothing_delivered_allocates_no_fee(self, session, split_order):
        settlement = await FinancialLedgerService.compute_settlement(split_order.id, [], 0.0, session)

        assert (settlement.revenue, settlement.cost, settlement.delivery_fee_allocated) == (0.0, 0.0, 0.0)
        assert (settlement.employee_profit, settlement.system_profit) == (0.0, 0.0)

    @pytest.mark.asyncio
    async def test_foreign_items_rejected(self, session, split_order, make_order):
        other = make_order(order_number="ORD-2", items=[{"product_id": 1, "quantity": 1, "unit_price": 1.0}])
        foreign = (await OrderItemRepository.get_by_order_id(other.id, session))[0].id

        with pytest.raises(InvalidPartialDeliverySelectionException):
            await FinancialLedgerService.compute_settlement(split_order.id, [foreign], 1.0, session)


class TestSettleOrder:

    @pytest.mark.asyncio
    async def test_settle_twice_keeps_one_record(self, session, split_order):
        first = await SettlementService.settle_order(split_order.id, session)
        second = await SettlementService.settle_order(split_order.id, session)

        count = session.execute(select(func.count(OrderProfit.id))).scalar_one()
        session.expire_all()
        order = await OrderRepository.get_by_id(split_order.id, session)
        assert count == 1
        assert first.id == second.id
        assert second.employee_id == 7
        assert order.settlement_status == SettlementStatus.SETTLED

    @pytest.mark.asyncio
    async def test_unknown_order(self, session):
        with pytest.raises(OrderNotFoundException):
            await SettlementService.settle_order(404, session)

    @pytest.mark.asyncio
    @patch('services.settlement.NotificationService.settlement_failed', new_callable=AsyncMock)
    @patch('services.settlement.OrderProfitRepository.upsert', new_callable=AsyncMock)
    async def test_try_settle_records_failure(self, mock_upsert, mock_notify, session, split_order):
        mock_upsert.side_effect = RuntimeError("disk full")

        status, reason = await SettlementService.try_settle(split_order.id, session)

        session.expire_all()
        assert status == SettlementStatus.FAILED
        assert "disk full" in reason
        assert (await OrderRepository.get_by_id(split_order.id, session)).settlement_status == SettlementStatus.FAILED
        mock_notify.assert_awaited_once_with(split_order.id, reason)


class TestResettlePending:

    @pytest.mark.asyncio
    async def test_pending_and_failed_orders_are_settled(self, session, session_factory, split_order, make_order):
        failed = make_order(order_number="ORD-2", status=OrderStatus.DELIVERED, delivery_status_code="21",
                            partial_delivery_processed_at=datetime(2024, 6, 2),
                            settlement_status=SettlementStatus.FAILED,
                            items=[{"product_id": 1, "quantity": 1, "unit_price": 1000.0,
                                    "item_status": ItemStatus.DELIVERED}])
        make_order(order_number="ORD-3", status=OrderStatus.SHIPPED)

        results = await SettlementService.resettle_pending(session_factory=session_factory)

        session.expire_all()
        assert results == {'checked': 2, 'settled': 2, 'errors': []}
        assert await OrderProfitRepository.get_by_order_id(split_order.id, session) is not None
        assert (await OrderRepository.get_by_id(failed.id, session)).settlement_status == SettlementStatus.SETTLED

    @pytest.mark.asyncio
    async def test_nothing_pending(self, session_factory, make_order):
        make_order(status=OrderStatus.DELIVERED, delivery_status_code="4")

        assert await SettlementService.resettle_pending(session_factory=session_factory) == \
               {'checked': 0, 'settled': 0, 'errors': []}

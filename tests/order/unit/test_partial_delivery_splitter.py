"""
Unit tests for PartialDeliverySplitter.

Order under test: item A 10,000 x 2 (cost 6,000), item B 5,000 x 1 (cost 2,000),
delivery fee 3,000, reported by the courier with status 21.
"""

from unittest.mock import AsyncMock, patch

import pytest

from enums.item_status import ItemStatus
from enums.order_status import OrderStatus
from enums.settlement_status import SettlementStatus
from exceptions.order import (InvalidOrderStateException, InvalidPartialDeliverySelectionException,
                              OrderNotFoundException, PartialDeliveryAlreadyProcessedException)
from exceptions.stock import InventoryNotFoundException
from models.orderItem import OrderItemDTO
from repositories.inventory import InventoryRepository
from repositories.order import OrderRepository
from repositories.orderItem import OrderItemRepository
from repositories.orderProfit import OrderProfitRepository
from repositories.partialDeliveryHistory import PartialDeliveryHistoryRepository
from services.partial_delivery import PartialDeliverySplitter


@pytest.fixture
def partial_order(session, make_order, make_inventory):
    make_inventory(product_id=1, available=0, reserved=2)
    make_inventory(product_id=2, available=0, reserved=1)
    order = make_order(status=OrderStatus.PARTIAL_DELIVERY, delivery_status_code="21", final_amount=23000.0,
                       requires_manual_processing=True, items=[
                           {"product_id": 1, "quantity": 2, "unit_price": 10000.0, "cost_price": 6000.0},
                           {"product_id": 2, "quantity": 1, "unit_price": 5000.0, "cost_price": 2000.0},
                       ])
    return order


async def _item_ids(order_id, session) -> list[int]:
    return [item.id for item in await OrderItemRepository.get_by_order_id(order_id, session)]


class TestExpectedPrice:

    def test_selected_items_plus_fee(self):
        items = [OrderItemDTO(id=1, unit_price=10000.0, quantity=2)]

        assert PartialDeliverySplitter.compute_expected_price(items, 3000.0) == 23000.0

    def test_nothing_selected_is_free(self):
        assert PartialDeliverySplitter.compute_expected_price([], 3000.0) == 0.0


class TestApply:

    @pytest.mark.asyncio
    async def test_split_keeps_selected_items(self, session, partial_order):
        item_a, item_b = await _item_ids(partial_order.id, session)

        result = await PartialDeliverySplitter.apply(partial_order.id, [item_a], session, processed_by="op-1")

        session.expire_all()
        order = await OrderRepository.get_by_id(partial_order.id, session)
        items = {item.id: item for item in await OrderItemRepository.get_by_order_id(partial_order.id, session)}
        inventory_a = await InventoryRepository.get(1, None, session)
        inventory_b = await InventoryRepository.get(2, None, session)
        history = await PartialDeliveryHistoryRepository.get_by_order_id(partial_order.id, session)
        profit = await OrderProfitRepository.get_by_order_id(partial_order.id, session)

        assert result.expected_price == 23000.0
        assert result.final_price == 23000.0
        assert result.discount == 0.0
        assert result.delivered_item_ids == [item_a]
        assert result.returned_item_ids == [item_b]
        assert result.warnings == []
        assert result.settlement_status == SettlementStatus.SETTLED

        assert order.status == OrderStatus.PARTIAL_DELIVERY
        assert order.requires_manual_processing is False
        assert order.partial_delivery_processed_at is not None
        assert order.settlement_status == SettlementStatus.SETTLED
        assert items[item_a].item_status == ItemStatus.DELIVERED
        assert items[item_a].quantity_delivered == 2
        assert items[item_b].item_status == ItemStatus.PENDING_RETURN

        assert (inventory_a.reserved_quantity, inventory_a.sold_quantity) == (0, 2)
        assert (inventory_b.reserved_quantity, inventory_b.available_quantity) == (1, 0)

        assert history.processed_by == "op-1"
        assert '"order_item_id": %d' % item_a in history.delivered_items_json
        assert profit.total_revenue == 23000.0
        assert profit.total_cost == 12000.0
        assert profit.employee_profit == 4000.0
        assert profit.system_profit == 4000.0

    @pytest.mark.asyncio
    async def test_nothing_selected(self, session, partial_order):
        item_a, item_b = await _item_ids(partial_order.id, session)

        result = await PartialDeliverySplitter.apply(partial_order.id, [], session)

        assert result.expected_price == 0.0
        assert result.final_price == 0.0
        assert result.returned_item_ids == [item_a, item_b]
        assert result.status == OrderStatus.PARTIAL_DELIVERY
        assert (await InventoryRepository.get(1, None, session)).reserved_quantity == 2

    @pytest.mark.asyncio
    async def test_everything_selected_marks_delivered(self, session, partial_order):
        item_ids = await _item_ids(partial_order.id, session)

        result = await PartialDeliverySplitter.apply(partial_order.id, item_ids, session)

        session.expire_all()
        assert result.status == OrderStatus.DELIVERED
        assert result.returned_item_ids == []
        assert (await OrderRepository.get_by_id(partial_order.id, session)).status == OrderStatus.DELIVERED

    @pytest.mark.asyncio
    async def test_operator_price_records_discount(self, session, partial_order):
        item_a, _ = await _item_ids(partial_order.id, session)

        result = await PartialDeliverySplitter.apply(partial_order.id, [item_a], session, final_price=21000.0)

        assert result.final_price == 21000.0
        assert result.discount == 2000.0

    @pytest.mark.asyncio
    async def test_courier_price_mismatch_is_a_warning(self, session, make_order, make_inventory):
        make_inventory(product_id=1, reserved=1)
        order = make_order(status=OrderStatus.PARTIAL_DELIVERY, delivery_status_code="21", final_amount=30000.0,
                           items=[{"product_id": 1, "quantity": 1, "unit_price": 10000.0}])
        item_ids = await _item_ids(order.id, session)

        result = await PartialDeliverySplitter.apply(order.id, item_ids, session)

        assert result.courier_price == 30000.0
        assert len(result.warnings) == 1
        assert "30000.0" in result.warnings[0]


class TestReentry:

    @pytest.mark.asyncio
    async def test_same_selection_is_a_noop(self, session, partial_order):
        item_a, _ = await _item_ids(partial_order.id, session)
        await PartialDeliverySplitter.apply(partial_order.id, [item_a], session)

        result = await PartialDeliverySplitter.apply(partial_order.id, [item_a], session)

        inventory = await InventoryRepository.get(1, None, session)
        assert result.already_processed is True
        assert result.final_price == 23000.0
        assert (inventory.reserved_quantity, inventory.sold_quantity) == (0, 2)

    @pytest.mark.asyncio
    async def test_different_selection_is_rejected(self, session, partial_order):
        item_a, item_b = await _item_ids(partial_order.id, session)
        await PartialDeliverySplitter.apply(partial_order.id, [item_a], session)

        with pytest.raises(PartialDeliveryAlreadyProcessedException) as exc_info:
            await PartialDeliverySplitter.apply(partial_order.id, [item_a, item_b], session)

        assert exc_info.value.applied_item_ids == [item_a]


class TestRejectedRequests:

    @pytest.mark.asyncio
    async def test_unknown_order(self, session):
        with pytest.raises(OrderNotFoundException):
            await PartialDeliverySplitter.apply(404, [], session)

    @pytest.mark.asyncio
    async def test_order_not_in_partial_delivery(self, session, make_order):
        order = make_order(status=OrderStatus.SHIPPED, delivery_status_code="2",
                           items=[{"product_id": 1, "quantity": 1, "unit_price": 1000.0}])

        with pytest.raises(InvalidOrderStateException):
            await PartialDeliverySplitter.apply(order.id, [], session)

    @pytest.mark.asyncio
    async def test_foreign_item_selection(self, session, partial_order, make_order):
        other = make_order(order_number="ORD-2", items=[{"product_id": 1, "quantity": 1, "unit_price": 1000.0}])
        foreign_id = (await _item_ids(other.id, session))[0]

        with pytest.raises(InvalidPartialDeliverySelectionException) as exc_info:
            await PartialDeliverySplitter.apply(partial_order.id, [foreign_id], session)

        session.expire_all()
        assert exc_info.value.unknown_item_ids == [foreign_id]
        assert (await OrderRepository.get_by_id(partial_order.id, session)).partial_delivery_processed_at is None

    @pytest.mark.asyncio
    async def test_stock_anomaly_rolls_back_the_split(self, session, make_order):
        order = make_order(status=OrderStatus.PARTIAL_DELIVERY, delivery_status_code="21",
                           items=[{"product_id": 77, "quantity": 1, "unit_price": 1000.0}])
        item_ids = await _item_ids(order.id, session)

        with pytest.raises(InventoryNotFoundException):
            await PartialDeliverySplitter.apply(order.id, item_ids, session)

        session.expire_all()
        assert (await OrderRepository.get_by_id(order.id, session)).partial_delivery_processed_at is None


class TestSettlementFailure:

    @pytest.mark.asyncio
    @patch('services.settlement.NotificationService.settlement_failed', new_callable=AsyncMock)
    @patch('services.settlement.FinancialLedgerService.compute_settlement', new_callable=AsyncMock)
    async def test_split_survives_settlement_failure(self, mock_compute, mock_notify, session, partial_order):
        mock_compute.side_effect = RuntimeError("ledger unavailable")
        item_a, item_b = await _item_ids(partial_order.id, session)

        result = await PartialDeliverySplitter.apply(partial_order.id, [item_a], session)

        session.expire_all()
        order = await OrderRepository.get_by_id(partial_order.id, session)
        items = {item.id: item for item in await OrderItemRepository.get_by_order_id(partial_order.id, session)}
        assert result.settlement_status == SettlementStatus.FAILED
        assert any("ledger unavailable" in warning for warning in result.warnings)
        assert order.partial_delivery_processed_at is not None
        assert order.settlement_status == SettlementStatus.FAILED
        assert items[item_a].item_status == ItemStatus.DELIVERED
        assert (await InventoryRepository.get(1, None, session)).sold_quantity == 2
        mock_notify.assert_awaited_once()

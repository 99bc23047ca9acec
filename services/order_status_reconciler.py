"""
Order Status Reconciler

Pulls the courier's current status for an account's in-flight orders and
applies it locally: delivery code/text, canonical status, stock release on
final delivery or confirmed return, and the collected price.

Replaying the same courier status is harmless: side effects only run on a
canonical state change, and every stock movement is idempotent per order item.

Free text that only matches a pattern rule never moves an order into a
stock-releasing state, and an order already split by an operator is not
pulled back into partial delivery while the courier keeps reporting 21.
"""

import logging
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

import config
from courier_api.CourierApiWrapper import CourierApiWrapper
from db import session_commit, session_rollback
from enums.item_status import ItemStatus
from enums.order_status import OrderStatus
from exceptions.courier import AuthExpiredException, CourierException, MalformedCourierResponseException
from exceptions.order import InvalidOrderStateException, OrderNotFoundException
from exceptions.stock import StockException
from exceptions.sync import AccountNotFoundException
from models.courier import CourierOrderStatusDTO
from models.deliveryAccount import DeliveryAccountDTO
from models.order import OrderDTO
from repositories.deliveryAccount import DeliveryAccountRepository
from repositories.order import OrderRepository
from repositories.orderItem import OrderItemRepository
from repositories.partialDeliveryHistory import PartialDeliveryHistoryRepository
from services.stock_ledger import StockLedgerService
from utils.datetime_utils import utcnow
from utils.delivery_status_registry import DeliveryStatusRegistry
from utils.delivery_status_resolver import DeliveryStatusResolver, ResolvedStatus
from utils.order_state_machine import OrderStateMachine

logger = logging.getLogger(__name__)

STOCK_RELEASING_STATES = frozenset(
    DeliveryStatusRegistry.lookup(code).canonical_state for code in DeliveryStatusRegistry.stock_releasing_codes()
)


class OrderStatusReconciler:

    @staticmethod
    def select_external_reference(order: OrderDTO) -> str | None:
        """First non-empty of tracking number, QR id, courier order id, local order number."""
        for reference in (order.tracking_number, order.qr_id, order.delivery_partner_order_id, order.order_number):
            if reference is not None and str(reference).strip():
                return str(reference).strip()
        return None

    @staticmethod
    def latest_status(statuses: list[CourierOrderStatusDTO]) -> CourierOrderStatusDTO | None:
        if not statuses:
            return None
        return max(statuses, key=lambda status: (status.updated_at is not None, status.updated_at or datetime.min))

    @staticmethod
    async def reconcile_account(account: DeliveryAccountDTO, session: Session | AsyncSession,
                                client=CourierApiWrapper, now: datetime | None = None) -> int:
        """
        Reconcile a bounded slice of the account's non-terminal orders.

        Each order is committed on its own. A courier error (auth or transient)
        stops the pass and propagates after the orders done so far are kept;
        a per-order anomaly skips only that order.

        Returns:
            Number of orders whose delivery data changed
        """
        now = now or utcnow()
        orders = await OrderRepository.get_trackable_by_account(account.id, config.ORDER_SYNC_BATCH_LIMIT, session)
        if not orders:
            logger.debug(f"[Reconciler] Account {account.id}: no orders to track")
            return 0

        logger.info(f"[Reconciler] Account {account.id}: checking {len(orders)} orders")
        updated = 0
        for order in orders:
            reference = OrderStatusReconciler.select_external_reference(order)
            if reference is None:
                logger.warning(f"[Reconciler] Order {order.id} has no external reference, skipping")
                continue

            try:
                statuses = await client.get_order_statuses(account.token, reference)
            except MalformedCourierResponseException as e:
                logger.warning(f"[Reconciler] Order {order.id}: malformed courier response, skipping: {e}")
                continue
            except CourierException:
                logger.warning(f"[Reconciler] Account {account.id}: courier error at order {order.id}, "
                               f"{updated} orders updated before stopping")
                raise

            try:
                if await OrderStatusReconciler.reconcile_order(
                        order, OrderStatusReconciler.latest_status(statuses), session, now):
                    updated += 1
                await session_commit(session)
            except StockException as e:
                await session_rollback(session)
                logger.error(f"[Reconciler] Order {order.id}: stock anomaly, order skipped: {e}")

        logger.info(f"[Reconciler] Account {account.id}: {updated}/{len(orders)} orders updated")
        return updated

    @staticmethod
    async def reconcile_order(order: OrderDTO, remote_status: CourierOrderStatusDTO | None,
                              session: Session | AsyncSession, now: datetime | None = None) -> bool:
        """
        Apply one courier status to a local order.

        Returns:
            True if the order's delivery data changed (not counting last_synced_at)
        """
        now = now or utcnow()
        values = {'last_synced_at': now}

        if remote_status is None:
            logger.debug(f"[Reconciler] Order {order.id}: courier returned no status")
            await OrderRepository.update_fields(order.id, values, session)
            return False

        if remote_status.status_code != order.delivery_status_code and remote_status.status_code is not None:
            values['delivery_status_code'] = remote_status.status_code
        if remote_status.status_text != order.delivery_status_text and remote_status.status_text is not None:
            values['delivery_status_text'] = remote_status.status_text

        resolved = DeliveryStatusResolver.resolve(remote_status.status_code, remote_status.status_text)
        if not resolved.is_known or resolved.canonical_state is None:
            logger.warning(f"[Reconciler] Order {order.id}: unknown courier status "
                           f"code={remote_status.status_code!r} text={remote_status.status_text!r}, "
                           f"status left at {order.status.value}")
        elif resolved.canonical_state != order.status and OrderStatusReconciler._transition_allowed(order, resolved):
            values.update(await OrderStatusReconciler._apply_transition(order, resolved, session, now))

        await OrderStatusReconciler._sync_price(order, remote_status, values, session)
        await OrderRepository.update_fields(order.id, values, session)
        return len(values) > 1

    @staticmethod
    async def reconcile_single(order_id: int, session: Session | AsyncSession,
                               client=CourierApiWrapper, now: datetime | None = None) -> tuple[bool, OrderDTO]:
        """
        Pull and apply the courier status of one order on demand, terminal or not.

        Returns:
            (changed, reloaded order)

        Raises:
            OrderNotFoundException: Unknown order
            InvalidOrderStateException: Order not handed to a delivery account
            AccountNotFoundException: Order's delivery account is gone
            AuthExpiredException: Account has no valid courier token
            CourierAPIException: Transient courier failure, nothing is written
            StockException: Stock anomaly, the order update is rolled back
        """
        now = now or utcnow()
        order = await OrderRepository.get_by_id(order_id, session)
        if order is None:
            raise OrderNotFoundException(order_id)
        if order.delivery_account_id is None:
            raise InvalidOrderStateException(order_id, order.status.value, "handed to a delivery account")

        account = await DeliveryAccountRepository.get_by_id(order.delivery_account_id, session)
        if account is None:
            raise AccountNotFoundException(order.delivery_account_id)
        if not account.has_valid_token(now):
            raise AuthExpiredException(account.id, "no valid token, login required")

        reference = OrderStatusReconciler.select_external_reference(order)
        if reference is None:
            raise InvalidOrderStateException(order_id, order.status.value, "tracked by an external reference")

        try:
            statuses = await client.get_order_statuses(account.token, reference)
        except MalformedCourierResponseException as e:
            logger.warning(f"[Reconciler] Order {order_id}: malformed courier response, treated as no status: {e}")
            statuses = []

        try:
            changed = await OrderStatusReconciler.reconcile_order(
                order, OrderStatusReconciler.latest_status(statuses), session, now)
            await session_commit(session)
        except StockException:
            await session_rollback(session)
            raise

        logger.info(f"[Reconciler] Order {order_id} synced on demand by {reference}, changed={changed}")
        return changed, await OrderRepository.get_by_id(order_id, session)

    @staticmethod
    def _transition_allowed(order: OrderDTO, resolved: ResolvedStatus) -> bool:
        if resolved.source == 'pattern' and resolved.canonical_state in STOCK_RELEASING_STATES:
            logger.warning(f"[Reconciler] Order {order.id}: free-text status {resolved.label!r} reads as "
                           f"{resolved.canonical_state.value} but cannot release stock, "
                           f"status left at {order.status.value}")
            return False
        if order.partial_delivery_processed_at is not None \
                and resolved.canonical_state == OrderStatus.PARTIAL_DELIVERY:
            logger.debug(f"[Reconciler] Order {order.id}: partial delivery already split, "
                         f"status kept at {order.status.value}")
            return False
        return True

    @staticmethod
    async def _apply_transition(order: OrderDTO, resolved: ResolvedStatus,
                                session: Session | AsyncSession, now: datetime) -> dict:
        new_status = resolved.canonical_state
        if not OrderStateMachine.validate_and_log_transition(order.id, order.status, new_status):
            # The courier is authoritative, the unexpected transition is applied anyway
            logger.warning(f"[Reconciler] Order {order.id}: applying unexpected courier transition "
                           f"{order.status.value} -> {new_status.value}")

        values = {'status': new_status, 'status_changed_at': now}

        if new_status == OrderStatus.PARTIAL_DELIVERY:
            values['requires_manual_processing'] = True
            logger.info(f"[Reconciler] Order {order.id} needs a manual partial delivery split")

        if resolved.policy.releases_stock and new_status == OrderStatus.DELIVERED:
            await OrderStatusReconciler._release_items(order.id, session, now)
        elif resolved.policy.releases_stock and new_status == OrderStatus.RETURNED_IN_STOCK:
            await OrderStatusReconciler._return_items(order.id, session)

        return values

    @staticmethod
    async def _release_items(order_id: int, session: Session | AsyncSession, now: datetime):
        items = await OrderItemRepository.get_by_order_id(order_id, session)
        for item in items:
            if item.item_status != ItemStatus.PENDING:
                continue
            await StockLedgerService.release_reserved_item(item.product_id, item.variant_id, item.quantity,
                                                           item.id, session)
            await OrderItemRepository.update_fields(item.id, {
                'item_status': ItemStatus.DELIVERED,
                'quantity_delivered': item.quantity,
                'delivered_at': now,
            }, session)

    @staticmethod
    async def _return_items(order_id: int, session: Session | AsyncSession):
        items = await OrderItemRepository.get_by_order_id(order_id, session)
        for item in items:
            if item.item_status not in (ItemStatus.PENDING, ItemStatus.PENDING_RETURN):
                continue
            await StockLedgerService.return_reserved_item(item.product_id, item.variant_id, item.quantity,
                                                          item.id, session)
            await OrderItemRepository.update_fields(item.id, {'item_status': ItemStatus.RETURNED}, session)

    @staticmethod
    async def _sync_price(order: OrderDTO, remote_status: CourierOrderStatusDTO, values: dict,
                          session: Session | AsyncSession):
        price = remote_status.price
        if price is None or price <= 0 or price == order.final_amount:
            return
        # A split order's final amount was set by the operator
        if order.partial_delivery_processed_at is not None \
                or await PartialDeliveryHistoryRepository.exists_for_order(order.id, session):
            return
        logger.info(f"[Reconciler] Order {order.id}: courier price {price} replaces {order.final_amount}")
        values['final_amount'] = price

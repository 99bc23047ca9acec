import logging

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

from db import get_db_session, session_commit, session_rollback
from enums.item_status import ItemStatus
from enums.settlement_status import SettlementStatus
from exceptions.order import OrderNotFoundException
from exceptions.settlement import SettlementFailureException
from models.orderProfit import OrderProfitDTO
from repositories.order import OrderRepository
from repositories.orderItem import OrderItemRepository
from repositories.orderProfit import OrderProfitRepository
from services.financial_ledger import FinancialLedgerService
from services.notification import NotificationService
from utils.transaction_manager import TransactionManager

logger = logging.getLogger(__name__)


class SettlementService:

    @staticmethod
    @TransactionManager.with_retry()
    async def settle_order(order_id: int, session: Session | AsyncSession) -> OrderProfitDTO:
        """
        Compute and store the profit split of an order's delivered items.

        Idempotent: the OrderProfit row is keyed by order_id and overwritten on
        every run, so a retry after a partial failure converges to one record.
        """
        try:
            order = await OrderRepository.get_by_id(order_id, session)
            if order is None:
                raise OrderNotFoundException(order_id)

            items = await OrderItemRepository.get_by_order_id(order_id, session)
            delivered_item_ids = [item.id for item in items if item.item_status == ItemStatus.DELIVERED]
            settlement = await FinancialLedgerService.compute_settlement(
                order_id, delivered_item_ids, order.final_amount or 0.0, session
            )

            profit = OrderProfitDTO(
                order_id=order_id,
                employee_id=order.employee_id,
                total_revenue=settlement.revenue,
                total_cost=settlement.cost,
                delivery_fee_allocated=settlement.delivery_fee_allocated,
                employee_profit=settlement.employee_profit,
                system_profit=settlement.system_profit,
            )
            profit.id = await OrderProfitRepository.upsert(profit, session)
            await OrderRepository.update_fields(order_id, {'settlement_status': SettlementStatus.SETTLED}, session)
            await session_commit(session)
        except Exception:
            await session_rollback(session)
            raise

        logger.info(f"[Settlement] Order {order_id} settled: revenue={settlement.revenue}, "
                    f"employee={settlement.employee_profit}, system={settlement.system_profit}")
        return profit

    @staticmethod
    async def try_settle(order_id: int, session: Session | AsyncSession) -> tuple[SettlementStatus, str | None]:
        """
        Settle an order without ever undoing prior work.

        A failure is recorded as settlement_status=failed (picked up again by
        resettle_pending) and reported to admins.

        Returns:
            (settlement status, failure reason or None)
        """
        try:
            await SettlementService.settle_order(order_id, session)
            return SettlementStatus.SETTLED, None
        except OrderNotFoundException:
            raise
        except Exception as e:
            failure = SettlementFailureException(order_id, f"{type(e).__name__}: {e}")
            reason = failure.reason
            logger.error(f"[Settlement] {failure.message}")
            await OrderRepository.update_fields(order_id, {'settlement_status': SettlementStatus.FAILED}, session)
            await session_commit(session)
            await NotificationService.settlement_failed(order_id, reason)
            return SettlementStatus.FAILED, reason

    @staticmethod
    async def resettle_pending(session_factory=get_db_session, limit: int = 50) -> dict:
        """
        Reconciliation pass: settle split orders whose settlement is pending or failed.

        Returns:
            Dict with 'checked', 'settled' and 'errors' (list of {order_id, reason})
        """
        results = {'checked': 0, 'settled': 0, 'errors': []}

        async with session_factory() as session:
            orders = await OrderRepository.get_pending_settlements(limit, session)

        if not orders:
            logger.debug("[Settlement] No pending settlements")
            return results

        logger.info(f"[Settlement] Re-settling {len(orders)} orders")
        for order in orders:
            results['checked'] += 1
            async with session_factory() as session:
                status, reason = await SettlementService.try_settle(order.id, session)
            if status == SettlementStatus.SETTLED:
                results['settled'] += 1
            else:
                results['errors'].append({'order_id': order.id, 'reason': reason})

        logger.info(f"[Settlement] Reconciliation complete: {results['settled']}/{results['checked']} settled")
        return results

"""
HTTP API for operators and back-office UIs.

- POST /api/sync                                     run a sync (smart, specific_account, comprehensive)
- POST /api/orders/{order_id}/partial-delivery       apply an operator's item selection to a status-21 order
- POST /api/orders/{order_id}/settlement             retry a pending or failed settlement
- POST /api/orders/{order_id}/sync                   pull and apply one order's courier status now
- GET  /api/statuses                                 every courier code resolved, optionally for one canonical state
- GET  /api/statuses/{code}                          resolved courier status (label, canonical state, policy)
- GET  /api/accounts/{account_id}/invoices/summary   stored invoice count and total for an account

Security:
- Every request must carry the X-Api-Key header matching API_SECRET_TOKEN,
  compared in constant time.
"""

import logging
import secrets
import traceback
import uuid
from datetime import datetime

from fastapi import APIRouter, Depends, Header, HTTPException, status
from pydantic import BaseModel, Field

import config
from db import get_db_session
from enums.order_status import OrderStatus
from exceptions.courier import AuthExpiredException, CourierAPIException
from exceptions.order import (
    OrderNotFoundException,
    InvalidOrderStateException,
    InvalidPartialDeliverySelectionException,
    PartialDeliveryAlreadyProcessedException
)
from exceptions.stock import StockException
from exceptions.sync import AccountNotFoundException, InvalidSyncRequestException
from models.syncRun import SyncRequestDTO
from repositories.deliveryAccount import DeliveryAccountRepository
from repositories.deliveryInvoice import DeliveryInvoiceRepository
from services.notification import NotificationService
from services.order_status_reconciler import OrderStatusReconciler
from services.partial_delivery import PartialDeliverySplitter
from services.settlement import SettlementService
from services.sync_orchestrator import SyncOrchestrator
from utils.delivery_status_registry import DeliveryStatusRegistry
from utils.delivery_status_resolver import DeliveryStatusResolver

logger = logging.getLogger(__name__)


def generate_correlation_id() -> str:
    """Generate unique correlation ID for request tracing."""
    return f"{datetime.now().strftime('%Y%m%d-%H%M%S')}-{uuid.uuid4().hex[:8]}"


async def verify_api_key(x_api_key: str | None = Header(default=None)):
    if not config.API_SECRET_TOKEN:
        logger.error("API request rejected: API_SECRET_TOKEN is not configured")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    if x_api_key is None:
        logger.warning("API request rejected: Missing X-Api-Key header")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    if not secrets.compare_digest(x_api_key, config.API_SECRET_TOKEN):
        logger.warning("API request rejected: Invalid API key")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")


api_router = APIRouter(prefix="/api", tags=["api"], dependencies=[Depends(verify_api_key)])


class PartialDeliveryPayload(BaseModel):
    """Operator selection for a partially delivered order."""
    selected_item_ids: list[int] = Field(default_factory=list, description="Items the customer kept")
    final_price: float | None = Field(default=None, ge=0, description="Amount collected, defaults to expected price")
    processed_by: str | None = Field(default=None, max_length=255, description="Operator identifier")


@api_router.post("/sync")
async def run_sync(payload: SyncRequestDTO):
    """
    Run a sync synchronously and return the aggregated result.

    Returns:
        200: SyncResultDTO (per-account failures are reported inside, not as HTTP errors)
        404: Delivery account not found (specific_account mode)
        422: Invalid request
    """
    correlation_id = generate_correlation_id()
    logger.info(f"[{correlation_id}] Sync requested: mode={payload.mode.value}, account={payload.account_id}, "
                f"force={payload.force_refresh}")
    try:
        result = await SyncOrchestrator.run(payload, session_factory=get_db_session)
    except AccountNotFoundException as e:
        logger.warning(f"[{correlation_id}] {e.message}")
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)
    except InvalidSyncRequestException as e:
        logger.warning(f"[{correlation_id}] {e.message}")
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=e.message)

    return {"success": result.success, "correlation_id": correlation_id, **result.model_dump(mode='json')}


@api_router.post("/orders/{order_id}/partial-delivery")
async def apply_partial_delivery(order_id: int, payload: PartialDeliveryPayload):
    """
    Apply a partial delivery split.

    Request Body:
        {
            "selected_item_ids": [11, 12],
            "final_price": 23000,
            "processed_by": "operator-7"
        }

    Returns:
        200: Split applied, or already applied with the same selection (already_processed=true)
        404: Order not found
        409: Order not in partial delivery, already split differently, or stock mismatch
        422: Selected items do not belong to the order
        500: Server error
    """
    correlation_id = generate_correlation_id()
    logger.info(f"[{correlation_id}] Partial delivery for order {order_id}: items={payload.selected_item_ids}")

    async with get_db_session() as session:
        try:
            result = await PartialDeliverySplitter.apply(
                order_id=order_id,
                selected_item_ids=payload.selected_item_ids,
                session=session,
                final_price=payload.final_price,
                processed_by=payload.processed_by
            )
            logger.info(f"[{correlation_id}] ✅ Order {order_id} split, status={result.status.value}")
            return {"success": True, "correlation_id": correlation_id, **result.model_dump(mode='json')}

        except OrderNotFoundException as e:
            logger.warning(f"[{correlation_id}] Order {order_id} not found")
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)

        except InvalidPartialDeliverySelectionException as e:
            logger.warning(f"[{correlation_id}] Invalid selection: {e.unknown_item_ids}")
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=e.message)

        except (InvalidOrderStateException, PartialDeliveryAlreadyProcessedException, StockException) as e:
            logger.warning(f"[{correlation_id}] Conflict: {e.message}")
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.message)

        except Exception as e:
            logger.error(f"[{correlation_id}] Unexpected error", exc_info=True)
            await NotificationService.notify_admins_api_error(
                correlation_id,
                f"/api/orders/{order_id}/partial-delivery",
                e,
                traceback.format_exc()
            )
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Internal error")


@api_router.post("/orders/{order_id}/settlement")
async def retry_settlement(order_id: int):
    correlation_id = generate_correlation_id()
    async with get_db_session() as session:
        try:
            settlement_status, reason = await SettlementService.try_settle(order_id, session)
        except OrderNotFoundException as e:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)

    logger.info(f"[{correlation_id}] Settlement retry for order {order_id}: {settlement_status.value}")
    return {
        "success": reason is None,
        "correlation_id": correlation_id,
        "order_id": order_id,
        "settlement_status": settlement_status.value,
        "reason": reason,
    }


@api_router.post("/orders/{order_id}/sync")
async def sync_order(order_id: int):
    """
    Pull one order's courier status now, outside the scheduled cycle.

    Returns:
        200: Status applied (changed=false when the courier reports nothing new)
        404: Order or its delivery account not found
        409: Order not tracked by the courier, account needs a new login, or stock mismatch
        502: Courier unavailable
    """
    correlation_id = generate_correlation_id()
    async with get_db_session() as session:
        try:
            changed, order = await OrderStatusReconciler.reconcile_single(order_id, session)
        except (OrderNotFoundException, AccountNotFoundException) as e:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)
        except (InvalidOrderStateException, AuthExpiredException, StockException) as e:
            logger.warning(f"[{correlation_id}] Order {order_id} sync refused: {e.message}")
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.message)
        except CourierAPIException as e:
            logger.warning(f"[{correlation_id}] Order {order_id} sync failed: {e.message}")
            raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=e.message)

    return {
        "success": True,
        "correlation_id": correlation_id,
        "order_id": order_id,
        "changed": changed,
        "status": order.status.value,
        "delivery_status_code": order.delivery_status_code,
        "delivery_status_text": order.delivery_status_text,
        "requires_manual_processing": order.requires_manual_processing,
    }


@api_router.get("/accounts/{account_id}/invoices/summary")
async def invoice_summary(account_id: int):
    async with get_db_session() as session:
        account = await DeliveryAccountRepository.get_by_id(account_id, session)
        if account is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND,
                                detail=AccountNotFoundException(account_id).message)
        invoice_count = await DeliveryInvoiceRepository.count_by_account(account_id, session)
        total_amount = await DeliveryInvoiceRepository.get_total_amount_by_account(account_id, session)

    return {"account_id": account_id, "invoice_count": invoice_count, "total_amount": total_amount}


@api_router.get("/statuses")
async def list_statuses(state: OrderStatus | None = None):
    codes = DeliveryStatusRegistry.codes_for_state(state) if state is not None else DeliveryStatusRegistry.all_codes()
    return [DeliveryStatusResolver.resolve(code).model_dump(mode='json') for code in codes]


@api_router.get("/statuses/{code}")
async def resolve_status(code: str, text: str | None = None):
    """Resolve a courier status code (or, with code '-', a free-text status) for display."""
    primary_code = None if code == "-" else code
    resolved = DeliveryStatusResolver.resolve(primary_code, text)
    return resolved.model_dump(mode='json')

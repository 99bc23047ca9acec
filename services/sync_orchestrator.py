"""
Sync Orchestrator

One invocation = one sync run over a set of courier accounts:

1. accounts without a valid token are reported as needs_login
2. recently synced accounts are skipped (debounce) unless the run is forced
3. invoices newer than the account's cursor are fetched, re-filtered and upserted
4. the cursor advances monotonically and records the completed cycle
5. the account's in-flight orders are reconciled with the courier

Accounts run in fixed-size groups, each with its own DB session. One account's
failure becomes an error entry; it never aborts its siblings or the run.
"""

import asyncio
import json
import logging
from datetime import datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

import config
from courier_api.CourierApiWrapper import CourierApiWrapper
from db import get_db_session, session_commit, session_rollback
from enums.sync_mode import SyncMode
from exceptions.courier import AuthExpiredException, CourierAPIException
from exceptions.sync import AccountNotFoundException, InvalidSyncRequestException
from models.courier import CourierInvoiceDTO
from models.deliveryAccount import DeliveryAccountDTO
from models.syncCursor import SyncCursorDTO
from models.syncRun import (SyncRequestDTO, SyncResultDTO, SyncRunDTO, AccountRefDTO, SyncErrorDTO,
                            AccountSyncOutcomeDTO)
from repositories.deliveryAccount import DeliveryAccountRepository
from repositories.deliveryInvoice import DeliveryInvoiceRepository
from repositories.syncCursor import SyncCursorRepository
from repositories.syncRun import SyncRunRepository
from services.order_status_reconciler import OrderStatusReconciler
from utils.datetime_utils import utcnow
from utils.transaction_manager import TransactionManager

logger = logging.getLogger(__name__)


class SyncOrchestrator:

    @staticmethod
    def window_start(cursor: SyncCursorDTO, force: bool, now: datetime) -> datetime:
        if force:
            return now - timedelta(days=config.SYNC_FORCE_REFRESH_DAYS)
        if cursor.last_invoice_date is not None:
            return cursor.last_invoice_date
        return now - timedelta(days=config.SYNC_BOOTSTRAP_DAYS)

    @staticmethod
    def is_debounced(cursor: SyncCursorDTO, now: datetime) -> bool:
        if cursor.last_smart_sync_at is None:
            return False
        return now - cursor.last_smart_sync_at < timedelta(minutes=config.SYNC_DEBOUNCE_MINUTES)

    @staticmethod
    def select_new_invoices(invoices: list[CourierInvoiceDTO], since: datetime,
                            page_size: int) -> list[CourierInvoiceDTO]:
        """
        Client-side re-filter: strictly newer than `since`, oldest first, at most one page.

        Taking the oldest records keeps the cursor from jumping over invoices
        that did not fit in this page.
        """
        fresh = []
        for invoice in invoices:
            if invoice.timestamp is None:
                logger.warning(f"[Sync] Invoice {invoice.external_id} has no timestamp, dropped as anomaly")
                continue
            if invoice.timestamp > since:
                fresh.append(invoice)
        fresh.sort(key=lambda invoice: invoice.timestamp)
        return fresh[:page_size]

    @staticmethod
    async def load_accounts(request: SyncRequestDTO, session: Session | AsyncSession) -> list[DeliveryAccountDTO]:
        if request.mode == SyncMode.SPECIFIC_ACCOUNT:
            if request.account_id is None:
                raise InvalidSyncRequestException("account_id is required for specific_account sync")
            account = await DeliveryAccountRepository.get_by_id(request.account_id, session)
            if account is None:
                raise AccountNotFoundException(request.account_id)
            if not account.is_active:
                raise InvalidSyncRequestException(f"delivery account {request.account_id} is inactive")
            return [account]
        return await DeliveryAccountRepository.get_active(session, partner_name=config.COURIER_PARTNER_NAME)

    @staticmethod
    async def run(request: SyncRequestDTO, now: datetime | None = None,
                  session_factory=get_db_session, client=CourierApiWrapper) -> SyncResultDTO:
        """
        Execute one sync run.

        Args:
            request: Mode, optional account and force/invoice/order switches
            now: Logical time of the run (defaults to current UTC time)
            session_factory: Async context manager factory yielding DB sessions
            client: Courier API client

        Returns:
            SyncResultDTO aggregating all accounts; only invalid requests raise
        """
        started_at = utcnow()
        now = now or started_at
        force = request.is_forced

        async with session_factory() as session:
            accounts = await SyncOrchestrator.load_accounts(request, session)

        concurrency = config.SYNC_FULL_CONCURRENCY if force else config.SYNC_INCREMENTAL_CONCURRENCY
        logger.info(f"[Sync] Starting {request.mode.value} sync: {len(accounts)} accounts, "
                    f"force={force}, concurrency={concurrency}")

        result = SyncResultDTO(mode=request.mode)
        for offset in range(0, len(accounts), concurrency):
            group = accounts[offset:offset + concurrency]
            outcomes = await asyncio.gather(
                *[SyncOrchestrator.sync_account(account, request, now, session_factory, client)
                  for account in group],
                return_exceptions=True
            )
            for account, outcome in zip(group, outcomes):
                if isinstance(outcome, Exception):
                    logger.error(f"[Sync] Account {account.id} failed: {type(outcome).__name__}: {outcome}",
                                 exc_info=outcome)
                    outcome = AccountSyncOutcomeDTO(
                        account=SyncOrchestrator.account_ref(account),
                        error=SyncErrorDTO(account_id=account.id, error_type=type(outcome).__name__,
                                           message=str(outcome))
                    )
                elif isinstance(outcome, BaseException):
                    raise outcome
                SyncOrchestrator.merge_outcome(result, outcome)

        result.duration_seconds = (utcnow() - started_at).total_seconds()
        result.run_id = await SyncOrchestrator.record_run(result, force, started_at, session_factory)

        logger.info(f"[Sync] Run {result.run_id} finished in {result.duration_seconds:.2f}s: "
                    f"{result.accounts_processed} accounts, {result.invoices_synced} invoices, "
                    f"{result.orders_updated} orders, {len(result.needs_login)} need login, "
                    f"{len(result.skipped)} skipped, {len(result.errors)} errors")
        return result

    @staticmethod
    def account_ref(account: DeliveryAccountDTO) -> AccountRefDTO:
        return AccountRefDTO(account_id=account.id, partner_name=account.partner_name, username=account.username)

    @staticmethod
    def merge_outcome(result: SyncResultDTO, outcome: AccountSyncOutcomeDTO):
        result.invoices_synced += outcome.invoices_synced
        result.orders_updated += outcome.orders_updated
        if outcome.needs_login:
            result.needs_login.append(outcome.account)
        elif outcome.skipped:
            result.skipped.append(outcome.account)
        else:
            result.accounts_processed += 1
        if outcome.error is not None:
            result.errors.append(outcome.error)

    @staticmethod
    async def sync_account(account: DeliveryAccountDTO, request: SyncRequestDTO, now: datetime,
                           session_factory=get_db_session, client=CourierApiWrapper) -> AccountSyncOutcomeDTO:
        outcome = AccountSyncOutcomeDTO(account=SyncOrchestrator.account_ref(account))

        if not account.has_valid_token(now):
            logger.info(f"[Sync] Account {account.id} ({account.username}) needs a new courier login")
            outcome.needs_login = True
            return outcome

        async with session_factory() as session:
            cursor = await SyncCursorRepository.get_or_create(account.id, session)
            if not request.is_forced and SyncOrchestrator.is_debounced(cursor, now):
                logger.debug(f"[Sync] Account {account.id} synced at {cursor.last_smart_sync_at}, skipped")
                await session_commit(session)
                outcome.skipped = True
                return outcome

            try:
                if request.sync_invoices:
                    outcome.invoices_synced = await SyncOrchestrator.sync_invoices(
                        account, cursor, request.is_forced, now, session, client
                    )
                cursor.last_smart_sync_at = now
                await SyncCursorRepository.update(cursor, session)
                await session_commit(session)

                if request.sync_orders:
                    outcome.orders_updated = await OrderStatusReconciler.reconcile_account(
                        account, session, client=client, now=now
                    )
            except AuthExpiredException as e:
                await session_rollback(session)
                logger.warning(f"[Sync] Account {account.id}: courier rejected the token: {e.reason}")
                outcome.needs_login = True
            except CourierAPIException as e:
                await session_rollback(session)
                logger.warning(f"[Sync] Account {account.id}: transient courier error, will retry: {e}")
                outcome.error = SyncErrorDTO(account_id=account.id, error_type=type(e).__name__, message=str(e))

        return outcome

    @staticmethod
    async def sync_invoices(account: DeliveryAccountDTO, cursor: SyncCursorDTO, force: bool, now: datetime,
                            session: Session | AsyncSession, client=CourierApiWrapper) -> int:
        """Fetch, re-filter and upsert one page of invoices; advances cursor.last_invoice_date in place."""
        since = SyncOrchestrator.window_start(cursor, force, now)
        invoices = await client.list_invoices_since(account.token, since, config.SYNC_PAGE_SIZE)
        fresh = SyncOrchestrator.select_new_invoices(invoices, since, config.SYNC_PAGE_SIZE)
        if not fresh:
            logger.debug(f"[Sync] Account {account.id}: no invoices newer than {since}")
            return 0

        synced = await DeliveryInvoiceRepository.upsert_many(fresh, account.id, account.partner_name, session)
        batch_max = max(invoice.timestamp for invoice in fresh)
        if cursor.last_invoice_date is None or batch_max > cursor.last_invoice_date:
            cursor.last_invoice_date = batch_max
        logger.info(f"[Sync] Account {account.id}: {len(fresh)} invoices fetched, {synced} new or changed, "
                    f"cursor at {cursor.last_invoice_date}")
        return synced

    @staticmethod
    async def record_run(result: SyncResultDTO, force: bool, started_at: datetime, session_factory) -> int:
        async with TransactionManager.atomic_transaction(session_factory) as session:
            run_id = await SyncRunRepository.create(SyncRunDTO(
                mode=result.mode.value,
                force_refresh=force,
                started_at=started_at,
                finished_at=utcnow(),
                duration_seconds=result.duration_seconds,
                accounts_processed=result.accounts_processed,
                invoices_synced=result.invoices_synced,
                orders_updated=result.orders_updated,
                needs_login_json=json.dumps([account.model_dump() for account in result.needs_login]),
                errors_json=json.dumps([error.model_dump() for error in result.errors]),
                success=result.success,
            ), session)
        return run_id

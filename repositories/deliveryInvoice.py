import json
import logging

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

from db import session_execute, session_flush
from models.courier import CourierInvoiceDTO
from models.deliveryInvoice import DeliveryInvoice

logger = logging.getLogger(__name__)

# Columns a courier may legitimately change on an already ingested invoice
_MUTABLE_FIELDS = ('amount', 'delivery_price', 'orders_count', 'status', 'invoice_date', 'updated_at_remote')


class DeliveryInvoiceRepository:

    @staticmethod
    async def upsert_many(invoices: list[CourierInvoiceDTO], account_id: int, partner_name: str,
                          session: Session | AsyncSession) -> int:
        """
        Idempotently store a batch of courier invoices keyed by (partner, external id).

        New invoices are inserted, known ones are updated in place when the
        courier changed them, identical ones are left untouched. Running the
        same batch twice leaves row count and totals unchanged.

        Returns:
            Number of invoices inserted or changed
        """
        if not invoices:
            return 0

        # Last occurrence wins when the courier repeats an id within one batch
        incoming: dict[str, CourierInvoiceDTO] = {invoice.external_id: invoice for invoice in invoices}

        stmt = select(DeliveryInvoice).where(
            DeliveryInvoice.partner_name == partner_name,
            DeliveryInvoice.external_id.in_(list(incoming.keys()))
        )
        result = await session_execute(stmt, session)
        existing = {row.external_id: row for row in result.scalars().all()}

        changed = 0
        for external_id, invoice in incoming.items():
            values = {
                'amount': invoice.amount,
                'delivery_price': invoice.delivery_price,
                'orders_count': invoice.orders_count,
                'status': invoice.status,
                'invoice_date': invoice.invoice_date,
                'updated_at_remote': invoice.updated_at,
            }
            row = existing.get(external_id)
            if row is None:
                session.add(DeliveryInvoice(
                    partner_name=partner_name,
                    external_id=external_id,
                    delivery_account_id=account_id,
                    raw_data=json.dumps(invoice.raw, ensure_ascii=False, default=str),
                    **values
                ))
                changed += 1
            elif any(getattr(row, field) != values[field] for field in _MUTABLE_FIELDS):
                for field, value in values.items():
                    setattr(row, field, value)
                row.raw_data = json.dumps(invoice.raw, ensure_ascii=False, default=str)
                changed += 1

        await session_flush(session)
        logger.debug(f"[Invoices] Upserted batch of {len(incoming)} for account {account_id}: {changed} new/changed")
        return changed

    @staticmethod
    async def count_by_account(account_id: int, session: Session | AsyncSession) -> int:
        stmt = select(func.count(DeliveryInvoice.id)).where(DeliveryInvoice.delivery_account_id == account_id)
        result = await session_execute(stmt, session)
        return result.scalar_one()

    @staticmethod
    async def get_total_amount_by_account(account_id: int, session: Session | AsyncSession) -> float:
        stmt = select(func.coalesce(func.sum(DeliveryInvoice.amount), 0.0)).where(
            DeliveryInvoice.delivery_account_id == account_id
        )
        result = await session_execute(stmt, session)
        return float(result.scalar_one())

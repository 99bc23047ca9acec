from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

from db import session_execute, session_flush
from models.deliveryAccount import DeliveryAccount, DeliveryAccountDTO


class DeliveryAccountRepository:

    @staticmethod
    async def create(account_dto: DeliveryAccountDTO, session: Session | AsyncSession) -> int:
        account = DeliveryAccount(**account_dto.model_dump(exclude_none=True))
        session.add(account)
        await session_flush(session)
        return account.id

    @staticmethod
    async def get_by_id(account_id: int, session: Session | AsyncSession) -> DeliveryAccountDTO | None:
        stmt = select(DeliveryAccount).where(DeliveryAccount.id == account_id)
        result = await session_execute(stmt, session)
        account = result.scalar_one_or_none()
        if account:
            return DeliveryAccountDTO.model_validate(account, from_attributes=True)
        return None

    @staticmethod
    async def get_active(session: Session | AsyncSession, partner_name: str | None = None) -> list[DeliveryAccountDTO]:
        """All active accounts, including ones whose token expired (reported as needs_login)."""
        stmt = select(DeliveryAccount).where(DeliveryAccount.is_active == True)
        if partner_name:
            stmt = stmt.where(DeliveryAccount.partner_name == partner_name)
        stmt = stmt.order_by(DeliveryAccount.id)
        result = await session_execute(stmt, session)
        return [DeliveryAccountDTO.model_validate(account, from_attributes=True)
                for account in result.scalars().all()]

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

from db import session_execute, session_flush
from models.inventory import Inventory, InventoryDTO


def _variant_clause(variant_id: int | None):
    return Inventory.variant_id.is_(None) if variant_id is None else Inventory.variant_id == variant_id


class InventoryRepository:

    @staticmethod
    async def create(inventory_dto: InventoryDTO, session: Session | AsyncSession) -> int:
        inventory = Inventory(**inventory_dto.model_dump(exclude_none=True))
        session.add(inventory)
        await session_flush(session)
        return inventory.id

    @staticmethod
    async def get(product_id: int, variant_id: int | None, session: Session | AsyncSession) -> InventoryDTO | None:
        stmt = select(Inventory).where(Inventory.product_id == product_id, _variant_clause(variant_id))
        result = await session_execute(stmt, session)
        inventory = result.scalar_one_or_none()
        if inventory:
            return InventoryDTO.model_validate(inventory, from_attributes=True)
        return None

    @staticmethod
    async def move_quantity(product_id: int, variant_id: int | None, quantity: int,
                            source: str, target: str, session: Session | AsyncSession) -> bool:
        """
        Atomically move `quantity` between two of the available/reserved/sold columns.

        The guard on the source column makes the UPDATE a no-op when there is
        not enough stock, so concurrent writers can never drive it negative.

        Returns:
            True if the row was updated
        """
        source_column = getattr(Inventory, f"{source}_quantity")
        target_column = getattr(Inventory, f"{target}_quantity")
        stmt = (
            update(Inventory)
            .where(Inventory.product_id == product_id, _variant_clause(variant_id), source_column >= quantity)
            .values({source_column: source_column - quantity, target_column: target_column + quantity})
        )
        result = await session_execute(stmt, session)
        return result.rowcount == 1

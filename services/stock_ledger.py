"""
Stock Ledger

Moves item quantities between the available / reserved / sold pools of an
inventory row. Every operation is:
- atomic: a single guarded UPDATE, so the pools can never go negative
- idempotent: keyed by (order_item_id, movement type) in stock_movements,
  so replaying a transition never moves stock twice
- audited: one stock_movements row per item and operation

available + reserved + sold of a row is invariant under all three operations.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

from enums.stock_movement_type import StockMovementType
from exceptions.stock import InventoryNotFoundException, InsufficientReservedStockException
from models.stockMovement import StockMovementDTO
from repositories.inventory import InventoryRepository
from repositories.stockMovement import StockMovementRepository

logger = logging.getLogger(__name__)

# movement type -> (source pool, target pool)
_MOVES = {
    StockMovementType.RESERVE: ('available', 'reserved'),
    StockMovementType.SELL: ('reserved', 'sold'),
    StockMovementType.RETURN: ('reserved', 'available'),
}


class StockLedgerService:

    @staticmethod
    async def _apply(movement_type: StockMovementType, product_id: int, variant_id: int | None,
                     quantity: int, order_item_id: int, session: Session | AsyncSession) -> bool:
        if quantity <= 0:
            raise ValueError(f"Stock movement quantity must be positive (got: {quantity})")

        if await StockMovementRepository.exists(order_item_id, movement_type, session):
            logger.info(f"[StockLedger] {movement_type.value} for order item {order_item_id} already applied, skipping")
            return False

        source, target = _MOVES[movement_type]
        moved = await InventoryRepository.move_quantity(product_id, variant_id, quantity, source, target, session)
        if not moved:
            inventory = await InventoryRepository.get(product_id, variant_id, session)
            if inventory is None:
                raise InventoryNotFoundException(product_id, variant_id)
            raise InsufficientReservedStockException(
                product_id, variant_id, quantity, getattr(inventory, f"{source}_quantity")
            )

        await StockMovementRepository.create(StockMovementDTO(
            order_item_id=order_item_id,
            product_id=product_id,
            variant_id=variant_id,
            movement_type=movement_type,
            quantity=quantity
        ), session)
        logger.info(f"[StockLedger] {movement_type.value}: product={product_id} variant={variant_id} "
                    f"quantity={quantity} ({source} -> {target}) for order item {order_item_id}")
        return True

    @staticmethod
    async def reserve_item(product_id: int, variant_id: int | None, quantity: int, order_item_id: int,
                           session: Session | AsyncSession) -> bool:
        """Allocate available stock to an order item at placement time."""
        return await StockLedgerService._apply(StockMovementType.RESERVE, product_id, variant_id,
                                               quantity, order_item_id, session)

    @staticmethod
    async def release_reserved_item(product_id: int, variant_id: int | None, quantity: int, order_item_id: int,
                                    session: Session | AsyncSession) -> bool:
        """
        Convert an item's reserved quantity into sold quantity (final delivery).

        Returns:
            True if stock moved, False if this item was already released
        """
        return await StockLedgerService._apply(StockMovementType.SELL, product_id, variant_id,
                                               quantity, order_item_id, session)

    @staticmethod
    async def return_reserved_item(product_id: int, variant_id: int | None, quantity: int, order_item_id: int,
                                   session: Session | AsyncSession) -> bool:
        """
        Put an item's reserved quantity back into the sellable pool (confirmed return to merchant).

        Returns:
            True if stock moved, False if this item was already returned
        """
        return await StockLedgerService._apply(StockMovementType.RETURN, product_id, variant_id,
                                               quantity, order_item_id, session)

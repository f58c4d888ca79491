"""
Order Service — inventory ledger

Reserve and release against a single (product, size) stock counter. Each
call is one UPDATE statement, so the check and the change happen atomically
in the database: two concurrent reservations can never both read the same
stale count.

The ledger runs inside the caller's transaction and does not remember what
it released. Making sure an order is released at most once is the job of
OrderService and AccountCascadeCoordinator.
"""

import logging
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from .errors import NotFoundError, OutOfStockError, ValidationError
from .tables import product_sizes

logger = logging.getLogger(__name__)


class InventoryLedger:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def reserve(self, product_id: UUID, size: str, quantity: int) -> None:
        """Decrement the counter by ``quantity`` iff at least that much is in stock."""
        if quantity < 1:
            raise ValidationError("Quantity must be at least 1")

        result = await self.session.execute(
            update(product_sizes)
            .where(
                product_sizes.c.product_id == str(product_id),
                product_sizes.c.size == size,
                product_sizes.c.stock >= quantity,
            )
            .values(stock=product_sizes.c.stock - quantity)
        )
        if result.rowcount == 1:
            logger.debug("Reserved %s x %s/%s", quantity, product_id, size)
            return

        available = await self.stock_level(product_id, size)
        if available is None:
            raise NotFoundError(
                "Size", size, f"Size {size} not found for product {product_id}"
            )
        raise OutOfStockError(product_id, size, available, quantity)

    async def release(self, product_id: UUID, size: str, quantity: int) -> bool:
        """Increment the counter by ``quantity``.

        Returns False when the product or size no longer exists; there is
        nothing to put the stock back on, so the release is skipped.
        """
        result = await self.session.execute(
            update(product_sizes)
            .where(
                product_sizes.c.product_id == str(product_id),
                product_sizes.c.size == size,
            )
            .values(stock=product_sizes.c.stock + quantity)
        )
        if result.rowcount == 0:
            logger.warning(
                "Skipped release of %s x %s/%s: size no longer exists",
                quantity, product_id, size,
            )
            return False
        return True

    async def stock_level(self, product_id: UUID, size: str) -> int | None:
        result = await self.session.execute(
            select(product_sizes.c.stock).where(
                product_sizes.c.product_id == str(product_id),
                product_sizes.c.size == size,
            )
        )
        return result.scalar_one_or_none()

"""
Order Service — command handlers (write side)

OrderService runs each command as exactly one transaction:

  create_order   reserve stock for every line item, then insert the order
  cancel_order   release stock when the cancel policy says so, mark Cancelled
  update_status  validated status change; never touches stock

Stock changes and the order row commit together or not at all. Events are
recorded in the event store inside the transaction and published to Redis
only after the commit.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from uuid import UUID, uuid4

from sqlalchemy import insert, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import sessionmaker

from . import event_store, queries
from .database import unit_of_work
from .errors import NotFoundError, ValidationError
from .events import (
    InventoryReleased,
    InventoryReserved,
    OrderCancelled,
    OrderCreated,
    OrderStatusChanged,
    StockLine,
)
from .inventory import InventoryLedger
from .models import LineItem, Order
from .publisher import INVENTORY_EVENTS, ORDER_EVENTS, EventPublisher
from .schemas import CreateOrderRequest
from .status import OrderStatus, StatusStateMachine
from .tables import order_items, orders

logger = logging.getLogger(__name__)

DEFAULT_CANCELLATION_REASON = "Cancelled by admin"


@dataclass
class CancellationResult:
    order: Order
    inventory_restored: bool


class OrderService:
    def __init__(self, session_factory: sessionmaker, publisher: EventPublisher):
        self.session_factory = session_factory
        self.publisher = publisher

    # ── Create ───────────────────────────────────

    async def create_order(self, owner_id: UUID, request: CreateOrderRequest) -> Order:
        """
        Place an order.

        Line items are reserved sorted by (product id, size) so two orders
        touching the same products always lock them in the same sequence.
        The first failing line aborts the whole transaction.
        """
        if not request.items or request.shipping_address is None or request.total_amount is None:
            raise ValidationError("Please provide all required order details")

        now = datetime.now(timezone.utc)
        order_id = uuid4()
        unit_prices: dict[UUID, float] = {}

        async with unit_of_work(self.session_factory) as session:
            ledger = InventoryLedger(session)
            for item in sorted(request.items, key=lambda i: (str(i.product), i.size)):
                if item.product not in unit_prices:
                    product = await queries.get_product(session, item.product)
                    if product is None:
                        raise NotFoundError(
                            "Product", item.product, f"Product not found: {item.product}"
                        )
                    unit_prices[item.product] = product.price
                await ledger.reserve(item.product, item.size, item.quantity)

            line_items = [
                LineItem(
                    product_id=item.product,
                    size=item.size,
                    quantity=item.quantity,
                    unit_price=unit_prices[item.product],
                )
                for item in request.items
            ]
            # totalAmount is the storefront's checkout total (items plus
            # shipping) and is stored as sent
            order = Order(
                id=order_id,
                user_id=owner_id,
                items=line_items,
                shipping_address=request.shipping_address.model_dump(by_alias=True),
                total_amount=request.total_amount,
                status=OrderStatus.PENDING,
                created_at=now,
                updated_at=now,
            )
            await self._insert_order(session, order)

            created = OrderCreated(
                order_id=order.id,
                user_id=owner_id,
                items=_stock_lines(line_items),
                total_amount=order.total_amount,
                timestamp=now,
            )
            await event_store.append_event(session, order.id, "Order", created)

        logger.info(
            "Order %s created for user %s (%d line items)",
            order.id, owner_id, len(line_items),
        )
        await self.publisher.publish(ORDER_EVENTS, created)
        await self.publisher.publish_all(
            INVENTORY_EVENTS,
            [
                InventoryReserved(
                    order_id=order.id,
                    product_id=line.product_id,
                    size=line.size,
                    quantity=line.quantity,
                    timestamp=now,
                )
                for line in line_items
            ],
        )
        return order

    # ── Cancel ───────────────────────────────────

    async def cancel_order(self, order_id: UUID, reason: str | None = None) -> CancellationResult:
        """
        Cancel an order on behalf of an admin.

        Stock comes back only when the order was Processing or Shipped; a
        Pending cancellation keeps the stock taken at creation. The release
        and the status change commit together.
        """
        reason = reason or DEFAULT_CANCELLATION_REASON
        now = datetime.now(timezone.utc)
        released = None

        async with unit_of_work(self.session_factory) as session:
            order = await self._load_for_update(session, order_id)
            StatusStateMachine.ensure_cancellable(order.status)
            StatusStateMachine.validate_transition(order.status, OrderStatus.CANCELLED)
            previous_status = order.status

            if StatusStateMachine.restores_inventory_on_cancel(previous_status):
                released = await release_order_stock(
                    session, order, reason="order_cancelled", now=now
                )

            await session.execute(
                update(orders)
                .where(orders.c.id == str(order.id))
                .values(
                    status=OrderStatus.CANCELLED.value,
                    cancellation_reason=reason,
                    updated_at=now,
                )
            )
            order.status = OrderStatus.CANCELLED
            order.cancellation_reason = reason
            order.updated_at = now

            cancelled = OrderCancelled(
                order_id=order.id,
                previous_status=previous_status.value,
                reason=reason,
                inventory_restored=released is not None,
                timestamp=now,
            )
            await event_store.append_event(session, order.id, "Order", cancelled)

        logger.info(
            "Order %s cancelled from %s (inventory restored: %s)",
            order.id, previous_status.value, released is not None,
        )
        await self.publisher.publish(ORDER_EVENTS, cancelled)
        if released is not None:
            await self.publisher.publish(INVENTORY_EVENTS, released)
        return CancellationResult(order=order, inventory_restored=released is not None)

    # ── Status update ────────────────────────────

    async def update_status(self, order_id: UUID, status: OrderStatus) -> Order:
        """
        Generic admin status change.

        Setting Cancelled here does not release stock; only cancel_order
        does. Kept as observed, see DESIGN.md decision 2.
        """
        target = OrderStatus(status)
        now = datetime.now(timezone.utc)

        async with unit_of_work(self.session_factory) as session:
            order = await self._load_for_update(session, order_id)
            StatusStateMachine.validate_transition(order.status, target)
            previous_status = order.status

            await session.execute(
                update(orders)
                .where(orders.c.id == str(order.id))
                .values(status=target.value, updated_at=now)
            )
            order.status = target
            order.updated_at = now

            changed = OrderStatusChanged(
                order_id=order.id,
                previous_status=previous_status.value,
                status=target.value,
                timestamp=now,
            )
            await event_store.append_event(session, order.id, "Order", changed)

        logger.info("Order %s moved %s → %s", order.id, previous_status.value, target.value)
        await self.publisher.publish(ORDER_EVENTS, changed)
        return order

    # ── Helpers ──────────────────────────────────

    async def _load_for_update(self, session: AsyncSession, order_id: UUID) -> Order:
        order = await queries.get_order(session, order_id, for_update=True)
        if order is None:
            raise NotFoundError("Order", order_id, "Order not found")
        return order

    async def _insert_order(self, session: AsyncSession, order: Order) -> None:
        await session.execute(
            insert(orders).values(
                id=str(order.id),
                user_id=str(order.user_id),
                shipping_address=order.shipping_address,
                total_amount=order.total_amount,
                status=order.status.value,
                cancellation_reason=order.cancellation_reason,
                created_at=order.created_at,
                updated_at=order.updated_at,
            )
        )
        await session.execute(
            insert(order_items),
            [
                {
                    "order_id": str(order.id),
                    "position": position,
                    "product_id": str(item.product_id),
                    "size": item.size,
                    "quantity": item.quantity,
                    "unit_price": item.unit_price,
                }
                for position, item in enumerate(order.items)
            ],
        )


async def release_order_stock(
    session: AsyncSession,
    order: Order,
    reason: str,
    now: datetime,
) -> InventoryReleased | None:
    """
    Put every line item of ``order`` back in stock, once per order.

    The InventoryReleased entry in the order's event stream is the record
    that the release happened; when it is already there nothing is released
    again. Returns the recorded event, or None if the order was released
    before.
    """
    if await event_store.has_event(session, order.id, "InventoryReleased"):
        logger.warning("Order %s was already released; skipping", order.id)
        return None

    ledger = InventoryLedger(session)
    for item in sorted(order.items, key=lambda i: (str(i.product_id), i.size)):
        await ledger.release(item.product_id, item.size, item.quantity)

    released = InventoryReleased(
        order_id=order.id,
        items=_stock_lines(order.items),
        reason=reason,
        timestamp=now,
    )
    await event_store.append_event(session, order.id, "Order", released)
    return released


def _stock_lines(items: list[LineItem]) -> list[StockLine]:
    return [
        StockLine(product_id=i.product_id, size=i.size, quantity=i.quantity)
        for i in items
    ]

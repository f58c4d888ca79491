"""
Order Service — account deletion cascade

Deleting a customer account removes all of their orders first. Orders that
already consumed stock (Processing, Shipped, Delivered) give it back.

The cascade is a sequence of small transactions, one per order, followed by
the account delete. It is not all-or-nothing: if it stops halfway, running
it again picks up where it left off. An order whose step committed is gone,
and its InventoryReleased record prevents a second release, so no order is
ever restored twice.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import delete
from sqlalchemy.orm import sessionmaker

from . import event_store, queries
from .commands import release_order_stock
from .database import unit_of_work
from .errors import NotFoundError, StateConflictError
from .events import AccountDeleted, InventoryReleased, OrderDeleted
from .publisher import ACCOUNT_EVENTS, INVENTORY_EVENTS, ORDER_EVENTS, EventPublisher
from .status import StatusStateMachine
from .tables import accounts, order_items, orders

logger = logging.getLogger(__name__)


@dataclass
class CascadeResult:
    user_id: UUID
    orders_deleted: int
    orders_restored: int


class AccountCascadeCoordinator:
    def __init__(self, session_factory: sessionmaker, publisher: EventPublisher):
        self.session_factory = session_factory
        self.publisher = publisher

    async def delete_account(self, user_id: UUID) -> CascadeResult:
        async with self.session_factory() as session:
            account = await queries.get_account(session, user_id)
            if account is None:
                raise NotFoundError("User", user_id, "User not found")
            if account.is_admin:
                raise StateConflictError("Cannot delete admin accounts")
            order_ids = await queries.list_order_ids(session, user_id)

        deleted = restored = 0
        for order_id in order_ids:
            outcome = await self.delete_order(order_id)
            if outcome is None:
                continue
            deleted += 1
            restored += outcome

        now = datetime.now(timezone.utc)
        async with unit_of_work(self.session_factory) as session:
            await session.execute(delete(accounts).where(accounts.c.id == str(user_id)))
            account_deleted = AccountDeleted(
                user_id=user_id, orders_deleted=deleted, timestamp=now
            )
            await event_store.append_event(session, user_id, "Account", account_deleted)

        logger.info(
            "Account %s deleted with %d orders (%d restored to inventory)",
            user_id, deleted, restored,
        )
        await self.publisher.publish(ACCOUNT_EVENTS, account_deleted)
        return CascadeResult(user_id=user_id, orders_deleted=deleted, orders_restored=restored)

    async def delete_order(self, order_id: UUID) -> bool | None:
        """
        One cascade step: release the order's stock if it is owed, then delete
        the order, atomically.

        Returns whether stock was released, or None when the order no longer
        exists because an earlier run already handled it.
        """
        now = datetime.now(timezone.utc)
        released: InventoryReleased | None = None

        async with unit_of_work(self.session_factory) as session:
            order = await queries.get_order(session, order_id, for_update=True)
            if order is None:
                logger.info("Order %s already removed; skipping", order_id)
                return None

            if StatusStateMachine.restores_inventory_on_account_deletion(order.status):
                released = await release_order_stock(
                    session, order, reason="account_deleted", now=now
                )

            await session.execute(
                delete(order_items).where(order_items.c.order_id == str(order.id))
            )
            await session.execute(delete(orders).where(orders.c.id == str(order.id)))

            order_deleted = OrderDeleted(
                order_id=order.id,
                user_id=order.user_id,
                inventory_restored=released is not None,
                timestamp=now,
            )
            await event_store.append_event(session, order.id, "Order", order_deleted)

        await self.publisher.publish(ORDER_EVENTS, order_deleted)
        if released is not None:
            await self.publisher.publish(INVENTORY_EVENTS, released)
        return released is not None

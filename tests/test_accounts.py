"""Account deletion cascade: stock restoration, order removal, safe retries."""

from datetime import datetime, timezone
from uuid import uuid4

import pytest

from app import queries
from app.commands import release_order_stock
from app.database import unit_of_work
from app.errors import NotFoundError, StateConflictError
from app.status import OrderStatus


async def _advance(order_service, order_id, *statuses):
    for status in statuses:
        await order_service.update_status(order_id, status)


async def _account_exists(session_factory, user_id) -> bool:
    async with session_factory() as session:
        return await queries.get_account(session, user_id) is not None


async def _order_exists(session_factory, order_id) -> bool:
    async with session_factory() as session:
        return await queries.get_order(session, order_id) is not None


class TestDeleteAccount:
    async def test_shipped_order_stock_is_restored_and_everything_deleted(
        self, coordinator, order_service, seed, make_request, session_factory
    ):
        user_id = await seed.account()
        product_id = await seed.product({"9": 5}, price=60.0)
        order = await order_service.create_order(user_id, make_request([(product_id, "9", 2)], 120.0))
        await _advance(order_service, order.id, OrderStatus.PROCESSING, OrderStatus.SHIPPED)
        assert await seed.stock(product_id, "9") == 3

        result = await coordinator.delete_account(user_id)

        assert result.orders_deleted == 1
        assert result.orders_restored == 1
        assert await seed.stock(product_id, "9") == 5
        assert not await _order_exists(session_factory, order.id)
        assert not await _account_exists(session_factory, user_id)

    async def test_repeating_a_finished_cascade_restores_nothing(
        self, coordinator, order_service, seed, make_request
    ):
        user_id = await seed.account()
        product_id = await seed.product({"9": 5}, price=60.0)
        order = await order_service.create_order(user_id, make_request([(product_id, "9", 2)], 120.0))
        await _advance(order_service, order.id, OrderStatus.PROCESSING, OrderStatus.SHIPPED)
        await coordinator.delete_account(user_id)

        with pytest.raises(NotFoundError):
            await coordinator.delete_account(user_id)

        assert await seed.stock(product_id, "9") == 5

    async def test_retry_after_interrupted_cascade_restores_once(
        self, coordinator, order_service, seed, make_request, session_factory
    ):
        user_id = await seed.account()
        product_id = await seed.product({"9": 5}, price=60.0)
        shipped = await order_service.create_order(user_id, make_request([(product_id, "9", 2)], 120.0))
        delivered = await order_service.create_order(user_id, make_request([(product_id, "9", 1)], 60.0))
        await _advance(order_service, shipped.id, OrderStatus.PROCESSING, OrderStatus.SHIPPED)
        await _advance(
            order_service,
            delivered.id,
            OrderStatus.PROCESSING,
            OrderStatus.SHIPPED,
            OrderStatus.DELIVERED,
        )
        assert await seed.stock(product_id, "9") == 2

        # first run stopped after handling one order
        assert await coordinator.delete_order(shipped.id) is True
        assert await seed.stock(product_id, "9") == 4
        assert await _account_exists(session_factory, user_id)

        result = await coordinator.delete_account(user_id)

        assert result.orders_deleted == 1
        assert await seed.stock(product_id, "9") == 5
        assert not await _account_exists(session_factory, user_id)

    async def test_step_for_already_removed_order_is_a_no_op(
        self, coordinator, order_service, seed, make_request
    ):
        user_id = await seed.account()
        product_id = await seed.product({"9": 5}, price=60.0)
        order = await order_service.create_order(user_id, make_request([(product_id, "9", 2)], 120.0))
        await _advance(order_service, order.id, OrderStatus.PROCESSING)

        assert await coordinator.delete_order(order.id) is True
        assert await coordinator.delete_order(order.id) is None
        assert await seed.stock(product_id, "9") == 5

    @pytest.mark.parametrize("cancel_first", [False, True])
    async def test_pending_and_cancelled_orders_are_deleted_without_restoring(
        self, coordinator, order_service, seed, make_request, session_factory, cancel_first
    ):
        user_id = await seed.account()
        product_id = await seed.product({"9": 5}, price=60.0)
        order = await order_service.create_order(user_id, make_request([(product_id, "9", 2)], 120.0))
        if cancel_first:
            await order_service.cancel_order(order.id)

        result = await coordinator.delete_account(user_id)

        assert result.orders_deleted == 1
        assert result.orders_restored == 0
        assert await seed.stock(product_id, "9") == 3
        assert not await _order_exists(session_factory, order.id)

    async def test_admin_accounts_cannot_be_deleted(
        self, coordinator, order_service, seed, make_request, session_factory
    ):
        admin_id = await seed.account(is_admin=True)
        product_id = await seed.product({"9": 5}, price=60.0)
        order = await order_service.create_order(admin_id, make_request([(product_id, "9", 2)], 120.0))
        await _advance(order_service, order.id, OrderStatus.PROCESSING)

        with pytest.raises(StateConflictError, match="admin"):
            await coordinator.delete_account(admin_id)

        assert await _account_exists(session_factory, admin_id)
        assert await _order_exists(session_factory, order.id)
        assert await seed.stock(product_id, "9") == 3

    async def test_unknown_account_raises_not_found(self, coordinator):
        with pytest.raises(NotFoundError):
            await coordinator.delete_account(uuid4())

    async def test_account_without_orders(self, coordinator, seed, session_factory):
        user_id = await seed.account()

        result = await coordinator.delete_account(user_id)

        assert result.orders_deleted == 0
        assert not await _account_exists(session_factory, user_id)


class TestReleaseOnce:
    async def test_order_stock_is_released_at_most_once(
        self, order_service, seed, make_request, session_factory
    ):
        product_id = await seed.product({"9": 5}, price=60.0)
        order = await order_service.create_order(
            (await seed.account()), make_request([(product_id, "9", 2)], 120.0)
        )
        now = datetime.now(timezone.utc)

        async with unit_of_work(session_factory) as session:
            first = await release_order_stock(session, order, reason="test", now=now)
        async with unit_of_work(session_factory) as session:
            second = await release_order_stock(session, order, reason="test", now=now)

        assert first is not None
        assert second is None
        assert await seed.stock(product_id, "9") == 5

"""Inventory ledger: conditional reserve and plain release on one stock counter."""

import asyncio

import pytest

from app.database import unit_of_work
from app.errors import NotFoundError, OutOfStockError, ValidationError
from app.inventory import InventoryLedger


async def _reserve(session_factory, product_id, size, quantity):
    async with unit_of_work(session_factory) as session:
        await InventoryLedger(session).reserve(product_id, size, quantity)


class TestReserve:
    async def test_reserve_decrements_stock(self, session_factory, seed):
        product_id = await seed.product({"9": 10})
        await _reserve(session_factory, product_id, "9", 3)
        assert await seed.stock(product_id, "9") == 7

    async def test_reserve_all_remaining_stock(self, session_factory, seed):
        product_id = await seed.product({"9": 5})
        await _reserve(session_factory, product_id, "9", 5)
        assert await seed.stock(product_id, "9") == 0

    async def test_reserve_beyond_stock_leaves_counter_unchanged(self, session_factory, seed):
        product_id = await seed.product({"9": 2})

        with pytest.raises(OutOfStockError) as exc_info:
            await _reserve(session_factory, product_id, "9", 3)

        assert exc_info.value.available == 2
        assert exc_info.value.requested == 3
        assert exc_info.value.size == "9"
        assert await seed.stock(product_id, "9") == 2

    async def test_reserve_only_touches_requested_size(self, session_factory, seed):
        product_id = await seed.product({"9": 4, "10": 4})
        await _reserve(session_factory, product_id, "10", 1)
        assert await seed.stock(product_id, "9") == 4
        assert await seed.stock(product_id, "10") == 3

    async def test_unknown_size_raises_not_found(self, session_factory, seed):
        product_id = await seed.product({"9": 4})
        with pytest.raises(NotFoundError) as exc_info:
            await _reserve(session_factory, product_id, "13", 1)
        assert exc_info.value.resource == "Size"

    async def test_non_positive_quantity_is_rejected(self, session_factory, seed):
        product_id = await seed.product({"9": 4})
        with pytest.raises(ValidationError):
            await _reserve(session_factory, product_id, "9", 0)
        assert await seed.stock(product_id, "9") == 4

    async def test_concurrent_reservations_for_last_unit(self, session_factory, seed):
        product_id = await seed.product({"9": 1})

        results = await asyncio.gather(
            _reserve(session_factory, product_id, "9", 1),
            _reserve(session_factory, product_id, "9", 1),
            return_exceptions=True,
        )

        failures = [r for r in results if isinstance(r, Exception)]
        assert len(failures) == 1
        assert isinstance(failures[0], OutOfStockError)
        assert await seed.stock(product_id, "9") == 0


class TestRelease:
    async def test_release_increments_stock(self, session_factory, seed):
        product_id = await seed.product({"9": 3})
        async with unit_of_work(session_factory) as session:
            assert await InventoryLedger(session).release(product_id, "9", 2) is True
        assert await seed.stock(product_id, "9") == 5

    async def test_release_of_missing_size_is_skipped(self, session_factory, seed):
        product_id = await seed.product({"9": 3})
        async with unit_of_work(session_factory) as session:
            assert await InventoryLedger(session).release(product_id, "12", 2) is False
        assert await seed.stock(product_id, "9") == 3

    async def test_release_rolls_back_with_its_transaction(self, session_factory, seed):
        product_id = await seed.product({"9": 3})

        with pytest.raises(RuntimeError):
            async with unit_of_work(session_factory) as session:
                await InventoryLedger(session).release(product_id, "9", 2)
                raise RuntimeError("abort")

        assert await seed.stock(product_id, "9") == 3

"""
Order Service — read side

Loads products, orders and accounts into domain records. Write operations
use the same loaders inside their transaction; ``for_update`` row-locks the
order so concurrent status changes on one order queue up.
"""

import math
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from .models import Account, LineItem, Order, Product, SizeStock
from .status import OrderStatus
from .tables import accounts, order_items, orders, product_sizes, products

SORT_OPTIONS = {
    "newest": orders.c.created_at.desc(),
    "oldest": orders.c.created_at.asc(),
    "highest": orders.c.total_amount.desc(),
    "lowest": orders.c.total_amount.asc(),
}


# ── Products ─────────────────────────────────────


async def get_product(session: AsyncSession, product_id: UUID) -> Product | None:
    result = await session.execute(
        select(products).where(products.c.id == str(product_id))
    )
    row = result.fetchone()
    if not row:
        return None
    sizes = await session.execute(
        select(product_sizes.c.size, product_sizes.c.stock)
        .where(product_sizes.c.product_id == row.id)
        .order_by(product_sizes.c.position, product_sizes.c.size)
    )
    return Product(
        id=UUID(row.id),
        name=row.name,
        price=float(row.price),
        sizes=[SizeStock(label=s.size, stock=s.stock) for s in sizes.fetchall()],
    )


async def list_products(session: AsyncSession) -> list[Product]:
    result = await session.execute(select(products.c.id).order_by(products.c.name))
    listed = []
    for row in result.fetchall():
        product = await get_product(session, UUID(row.id))
        if product:
            listed.append(product)
    return listed


# ── Orders ───────────────────────────────────────


async def get_order(
    session: AsyncSession, order_id: UUID, for_update: bool = False
) -> Order | None:
    stmt = select(orders).where(orders.c.id == str(order_id))
    if for_update:
        stmt = stmt.with_for_update()
    result = await session.execute(stmt)
    row = result.fetchone()
    if not row:
        return None
    return await _load_order(session, row)


async def list_orders(
    session: AsyncSession,
    user_id: UUID | None = None,
    status: OrderStatus | None = None,
    sort: str = "newest",
    offset: int = 0,
    limit: int | None = None,
) -> list[Order]:
    stmt = select(orders).order_by(SORT_OPTIONS.get(sort, SORT_OPTIONS["newest"]))
    if user_id is not None:
        stmt = stmt.where(orders.c.user_id == str(user_id))
    if status is not None:
        stmt = stmt.where(orders.c.status == OrderStatus(status).value)
    if offset:
        stmt = stmt.offset(offset)
    if limit is not None:
        stmt = stmt.limit(limit)
    result = await session.execute(stmt)
    return [await _load_order(session, row) for row in result.fetchall()]


async def list_order_ids(session: AsyncSession, user_id: UUID) -> list[UUID]:
    result = await session.execute(
        select(orders.c.id)
        .where(orders.c.user_id == str(user_id))
        .order_by(orders.c.created_at.asc())
    )
    return [UUID(row.id) for row in result.fetchall()]


async def count_orders(session: AsyncSession, status: OrderStatus | None = None) -> int:
    stmt = select(func.count()).select_from(orders)
    if status is not None:
        stmt = stmt.where(orders.c.status == OrderStatus(status).value)
    result = await session.execute(stmt)
    return result.scalar_one()


async def count_orders_by_status(session: AsyncSession) -> dict[str, int]:
    result = await session.execute(
        select(orders.c.status, func.count()).group_by(orders.c.status)
    )
    counts = {s.value.lower(): 0 for s in OrderStatus}
    for status, count in result.fetchall():
        counts[status.lower()] = count
    counts["all"] = sum(counts.values())
    return counts


async def page_orders(
    session: AsyncSession,
    status: OrderStatus | None = None,
    sort: str = "newest",
    page: int = 1,
    limit: int = 10,
) -> dict:
    total = await count_orders(session, status)
    listed = await list_orders(
        session, status=status, sort=sort, offset=(page - 1) * limit, limit=limit
    )
    return {
        "total": total,
        "pages": math.ceil(total / limit) if limit else 0,
        "page": page,
        "orders": listed,
        "accounts": await get_accounts(session, (o.user_id for o in listed)),
        "summary": await count_orders_by_status(session),
    }


async def _load_order(session: AsyncSession, row) -> Order:
    items = await session.execute(
        select(order_items)
        .where(order_items.c.order_id == row.id)
        .order_by(order_items.c.position)
    )
    return Order(
        id=UUID(row.id),
        user_id=UUID(row.user_id),
        items=[
            LineItem(
                product_id=UUID(item.product_id),
                size=item.size,
                quantity=item.quantity,
                unit_price=float(item.unit_price),
            )
            for item in items.fetchall()
        ],
        shipping_address=row.shipping_address,
        total_amount=float(row.total_amount),
        status=OrderStatus(row.status),
        cancellation_reason=row.cancellation_reason,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


# ── Accounts ─────────────────────────────────────


async def get_account(session: AsyncSession, user_id: UUID) -> Account | None:
    result = await session.execute(select(accounts).where(accounts.c.id == str(user_id)))
    row = result.fetchone()
    if not row:
        return None
    return _to_account(row)


async def get_accounts(session: AsyncSession, user_ids) -> dict[UUID, Account]:
    ids = [str(user_id) for user_id in set(user_ids)]
    if not ids:
        return {}
    result = await session.execute(select(accounts).where(accounts.c.id.in_(ids)))
    return {UUID(row.id): _to_account(row) for row in result.fetchall()}


def _to_account(row) -> Account:
    return Account(
        id=UUID(row.id),
        first_name=row.first_name,
        last_name=row.last_name,
        email=row.email,
        is_admin=bool(row.is_admin),
    )

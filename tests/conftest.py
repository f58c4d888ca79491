from unittest.mock import AsyncMock
from uuid import UUID, uuid4

import httpx
import pytest
from sqlalchemy import insert, select

from app.accounts import AccountCascadeCoordinator
from app.commands import OrderService
from app.config import Settings
from app.database import create_engine, create_schema, create_session_factory, unit_of_work
from app.main import create_app
from app.publisher import EventPublisher
from app.schemas import CreateOrderRequest
from app.tables import accounts, product_sizes, products

SHIPPING_ADDRESS = {
    "fullName": "Jamie Rivera",
    "email": "jamie@example.com",
    "address": "42 Harbour Street",
    "city": "Portland",
    "state": "OR",
    "zipCode": "97201",
    "country": "USA",
    "phoneNumber": "503-555-0142",
}


class Seeder:
    """Writes catalog and account fixtures straight into the tables."""

    def __init__(self, session_factory):
        self.session_factory = session_factory

    async def product(self, sizes: dict[str, int], price: float = 100.0, name: str = "Air Runner") -> UUID:
        product_id = uuid4()
        async with unit_of_work(self.session_factory) as session:
            await session.execute(
                insert(products).values(id=str(product_id), name=name, price=price)
            )
            for position, (size, stock) in enumerate(sizes.items()):
                await session.execute(
                    insert(product_sizes).values(
                        product_id=str(product_id), size=size, position=position, stock=stock
                    )
                )
        return product_id

    async def account(self, is_admin: bool = False, first_name: str = "Jamie") -> UUID:
        user_id = uuid4()
        async with unit_of_work(self.session_factory) as session:
            await session.execute(
                insert(accounts).values(
                    id=str(user_id),
                    first_name=first_name,
                    last_name="Rivera",
                    email=f"{user_id.hex}@example.com",
                    is_admin=is_admin,
                )
            )
        return user_id

    async def stock(self, product_id: UUID, size: str) -> int:
        async with self.session_factory() as session:
            result = await session.execute(
                select(product_sizes.c.stock).where(
                    product_sizes.c.product_id == str(product_id),
                    product_sizes.c.size == size,
                )
            )
            return result.scalar_one()


@pytest.fixture
async def engine(tmp_path):
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'orders.db'}")
    await create_schema(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
def redis():
    return AsyncMock()


@pytest.fixture
def publisher(redis):
    return EventPublisher(redis)


@pytest.fixture
def order_service(session_factory, publisher):
    return OrderService(session_factory, publisher)


@pytest.fixture
def coordinator(session_factory, publisher):
    return AccountCascadeCoordinator(session_factory, publisher)


@pytest.fixture
def seed(session_factory):
    return Seeder(session_factory)


@pytest.fixture
def make_request():
    """Build a CreateOrderRequest from (product_id, size, quantity) tuples."""

    def _make(lines, total: float):
        return CreateOrderRequest.model_validate(
            {
                "items": [
                    {"product": str(product_id), "size": size, "quantity": quantity}
                    for product_id, size, quantity in lines
                ],
                "shippingAddress": SHIPPING_ADDRESS,
                "totalAmount": total,
            }
        )

    return _make


@pytest.fixture
def shipping_address():
    return dict(SHIPPING_ADDRESS)


@pytest.fixture
def order_body(shipping_address):
    """Build a POST /orders JSON body for a single line item."""

    def _body(product_id, size="9", quantity=1, total=100.0):
        return {
            "items": [{"product": str(product_id), "size": size, "quantity": quantity}],
            "shippingAddress": shipping_address,
            "totalAmount": total,
        }

    return _body


@pytest.fixture
async def client(engine, redis):
    app = create_app(Settings(database_url="sqlite+aiosqlite://"), engine=engine, redis=redis)
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

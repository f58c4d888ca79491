"""
Order Service — domain records

Plain in-memory shapes loaded from and written to the tables. They carry no
persistence logic; stock counters change only through InventoryLedger.
"""

from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID

from .status import OrderStatus


@dataclass
class SizeStock:
    label: str
    stock: int


@dataclass
class Product:
    id: UUID
    name: str
    price: float
    sizes: list[SizeStock] = field(default_factory=list)


@dataclass
class LineItem:
    product_id: UUID
    size: str
    quantity: int
    unit_price: float


@dataclass
class Order:
    id: UUID
    user_id: UUID
    items: list[LineItem]
    shipping_address: dict
    total_amount: float
    status: OrderStatus
    created_at: datetime
    updated_at: datetime
    cancellation_reason: str | None = None


@dataclass
class Account:
    id: UUID
    first_name: str
    last_name: str
    email: str
    is_admin: bool = False

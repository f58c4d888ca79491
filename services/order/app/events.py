"""
Order Service — event definitions

Facts recorded in the event store and published after commit. Events are
named in the past tense and never modified once written.
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel


class StockLine(BaseModel):
    product_id: UUID
    size: str
    quantity: int


class OrderCreated(BaseModel):
    """An order was placed and its stock reserved"""
    order_id: UUID
    user_id: UUID
    items: list[StockLine]
    total_amount: float
    timestamp: datetime


class InventoryReserved(BaseModel):
    """Stock for one line item was taken at order creation"""
    order_id: UUID
    product_id: UUID
    size: str
    quantity: int
    timestamp: datetime


class InventoryReleased(BaseModel):
    """Reserved stock of an order was put back (compensation)"""
    order_id: UUID
    items: list[StockLine]
    reason: str
    timestamp: datetime


class OrderStatusChanged(BaseModel):
    order_id: UUID
    previous_status: str
    status: str
    timestamp: datetime


class OrderCancelled(BaseModel):
    order_id: UUID
    previous_status: str
    reason: str
    inventory_restored: bool
    timestamp: datetime


class OrderDeleted(BaseModel):
    """An order was removed as part of deleting its owner's account"""
    order_id: UUID
    user_id: UUID
    inventory_restored: bool
    timestamp: datetime


class AccountDeleted(BaseModel):
    user_id: UUID
    orders_deleted: int
    timestamp: datetime

"""
Order Service — order status state machine

    Pending → Processing → Shipped → Delivered
       │          │           │
       └──────────┴───────────┴────→ Cancelled

Delivered and Cancelled are terminal.

Besides legality, this module owns the policies deciding when leaving a
status obliges the caller to put reserved stock back on the shelf.
"""

from enum import Enum

from .errors import StateConflictError


class OrderStatus(str, Enum):
    PENDING = "Pending"
    PROCESSING = "Processing"
    SHIPPED = "Shipped"
    DELIVERED = "Delivered"
    CANCELLED = "Cancelled"


class StatusStateMachine:
    TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
        OrderStatus.PENDING: frozenset({OrderStatus.PROCESSING, OrderStatus.CANCELLED}),
        OrderStatus.PROCESSING: frozenset({OrderStatus.SHIPPED, OrderStatus.CANCELLED}),
        OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED}),
        OrderStatus.DELIVERED: frozenset(),
        OrderStatus.CANCELLED: frozenset(),
    }

    # NOTE: Pending is absent even though stock is taken at creation for
    # every order. Kept as observed; see DESIGN.md, decision 1.
    RESTORE_ON_CANCEL = frozenset({OrderStatus.PROCESSING, OrderStatus.SHIPPED})

    RESTORE_ON_ACCOUNT_DELETION = frozenset(
        {OrderStatus.PROCESSING, OrderStatus.SHIPPED, OrderStatus.DELIVERED}
    )

    @classmethod
    def is_terminal(cls, status: OrderStatus) -> bool:
        return not cls.TRANSITIONS[OrderStatus(status)]

    @classmethod
    def can_transition(cls, current: OrderStatus, target: OrderStatus) -> bool:
        return OrderStatus(target) in cls.TRANSITIONS[OrderStatus(current)]

    @classmethod
    def validate_transition(cls, current: OrderStatus, target: OrderStatus) -> None:
        current, target = OrderStatus(current), OrderStatus(target)
        if cls.is_terminal(current):
            raise StateConflictError(
                f"Order is {current.value}; no further status changes are allowed"
            )
        if not cls.can_transition(current, target):
            raise StateConflictError(
                f"Cannot change order status from {current.value} to {target.value}"
            )

    @classmethod
    def ensure_cancellable(cls, current: OrderStatus) -> None:
        current = OrderStatus(current)
        if current is OrderStatus.DELIVERED:
            raise StateConflictError("Cannot cancel an order that has already been delivered")
        if current is OrderStatus.CANCELLED:
            raise StateConflictError("Order is already cancelled")

    @classmethod
    def restores_inventory_on_cancel(cls, current: OrderStatus) -> bool:
        return OrderStatus(current) in cls.RESTORE_ON_CANCEL

    @classmethod
    def restores_inventory_on_account_deletion(cls, current: OrderStatus) -> bool:
        return OrderStatus(current) in cls.RESTORE_ON_ACCOUNT_DELETION

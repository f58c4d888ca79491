"""
Order Service — error taxonomy

Every business failure is one of a closed set of kinds. Services raise the
matching subclass; the HTTP layer maps the kind to a status code in one place.
"""

from enum import Enum


class ErrorKind(str, Enum):
    VALIDATION = "ValidationError"
    NOT_FOUND = "NotFoundError"
    OUT_OF_STOCK = "OutOfStockError"
    STATE_CONFLICT = "StateConflictError"
    PERSISTENCE = "PersistenceError"


HTTP_STATUS = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.OUT_OF_STOCK: 400,
    ErrorKind.STATE_CONFLICT: 400,
    ErrorKind.PERSISTENCE: 500,
}


class OrderServiceError(Exception):
    kind: ErrorKind

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    @property
    def status_code(self) -> int:
        return HTTP_STATUS[self.kind]


class ValidationError(OrderServiceError):
    kind = ErrorKind.VALIDATION


class NotFoundError(OrderServiceError):
    """A product, size, order or account does not exist."""

    kind = ErrorKind.NOT_FOUND

    def __init__(self, resource: str, identifier, message: str | None = None) -> None:
        self.resource = resource
        self.identifier = identifier
        super().__init__(message or f"{resource} not found: {identifier}")


class OutOfStockError(OrderServiceError):
    kind = ErrorKind.OUT_OF_STOCK

    def __init__(self, product_id, size: str, available: int, requested: int) -> None:
        self.product_id = product_id
        self.size = size
        self.available = available
        self.requested = requested
        super().__init__(
            f"Not enough stock for product {product_id} in size {size}. "
            f"Available: {available}, Requested: {requested}"
        )


class StateConflictError(OrderServiceError):
    kind = ErrorKind.STATE_CONFLICT


class PersistenceError(OrderServiceError):
    kind = ErrorKind.PERSISTENCE

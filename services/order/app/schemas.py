"""
Order Service — request / response models

One explicit shape per operation. JSON field names (camelCase) match the
existing storefront client; Python attributes are snake_case.
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from .models import Account, Order, Product
from .status import OrderStatus

PHONE_PATTERN = r"^[+]?[(]?[0-9]{3}[)]?[-\s.]?[0-9]{3}[-\s.]?[0-9]{4,6}$"
EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)


# ── Requests ─────────────────────────────────────


class OrderItemRequest(CamelModel):
    product: UUID
    size: str = Field(min_length=1)
    quantity: int = Field(ge=1)


class ShippingAddress(CamelModel):
    full_name: str = Field(alias="fullName", min_length=2, max_length=100)
    email: str = Field(pattern=EMAIL_PATTERN)
    address: str = Field(min_length=5, max_length=200)
    city: str = Field(min_length=1)
    state: str = Field(min_length=1)
    zip_code: str = Field(alias="zipCode", min_length=1)
    country: str = Field(min_length=1)
    phone_number: str = Field(alias="phoneNumber", pattern=PHONE_PATTERN)


class CreateOrderRequest(CamelModel):
    # Presence is checked by OrderService so direct callers get the same
    # ValidationError as HTTP clients.
    items: list[OrderItemRequest] | None = None
    shipping_address: ShippingAddress | None = Field(default=None, alias="shippingAddress")
    total_amount: float | None = Field(default=None, alias="totalAmount", gt=0)


class CancelOrderRequest(CamelModel):
    reason: str | None = None


class UpdateStatusRequest(CamelModel):
    status: OrderStatus


# ── Responses ────────────────────────────────────


class OrderItemResponse(CamelModel):
    product: UUID
    size: str
    quantity: int
    price: float


class OrderResponse(CamelModel):
    id: UUID
    user: UUID
    items: list[OrderItemResponse]
    shipping_address: dict = Field(alias="shippingAddress")
    total_amount: float = Field(alias="totalAmount")
    status: OrderStatus
    cancellation_reason: str | None = Field(default=None, alias="cancellationReason")
    created_at: datetime = Field(alias="createdAt")
    updated_at: datetime = Field(alias="updatedAt")

    @classmethod
    def from_order(cls, order: Order) -> "OrderResponse":
        return cls(
            id=order.id,
            user=order.user_id,
            items=[
                OrderItemResponse(
                    product=item.product_id,
                    size=item.size,
                    quantity=item.quantity,
                    price=item.unit_price,
                )
                for item in order.items
            ],
            shipping_address=order.shipping_address,
            total_amount=order.total_amount,
            status=order.status,
            cancellation_reason=order.cancellation_reason,
            created_at=order.created_at,
            updated_at=order.updated_at,
        )


class UserDetails(CamelModel):
    id: UUID | None = None
    name: str
    email: str

    @classmethod
    def from_account(cls, account: Account | None) -> "UserDetails":
        # owner has no account row
        if account is None:
            return cls(name="Unknown User", email="unknown")
        return cls(
            id=account.id,
            name=f"{account.first_name} {account.last_name}",
            email=account.email,
        )


class AdminOrderResponse(OrderResponse):
    user_details: UserDetails = Field(alias="userDetails")

    @classmethod
    def from_order_and_account(
        cls, order: Order, account: Account | None
    ) -> "AdminOrderResponse":
        return cls(
            **OrderResponse.from_order(order).model_dump(),
            user_details=UserDetails.from_account(account),
        )


class CreateOrderResponse(CamelModel):
    success: bool = True
    order: OrderResponse


class CancelOrderResponse(CamelModel):
    success: bool = True
    message: str
    order: OrderResponse


class UpdateStatusResponse(CamelModel):
    success: bool = True
    order: OrderResponse


class OrderListResponse(CamelModel):
    success: bool = True
    count: int
    orders: list[OrderResponse]


class OrderPageResponse(CamelModel):
    success: bool = True
    total_orders: int = Field(alias="totalOrders")
    total_pages: int = Field(alias="totalPages")
    current_page: int = Field(alias="currentPage")
    orders: list[AdminOrderResponse]
    summary: dict[str, int]


class DeleteAccountResponse(CamelModel):
    success: bool = True
    message: str
    restored_inventory: bool = Field(default=True, alias="restoredInventory")


class ErrorResponse(CamelModel):
    success: bool = False
    message: str
    error: str


class SizeStockResponse(CamelModel):
    size: str
    stock: int


class ProductStockResponse(CamelModel):
    id: UUID
    name: str
    price: float
    sizes: list[SizeStockResponse]

    @classmethod
    def from_product(cls, product: Product) -> "ProductStockResponse":
        return cls(
            id=product.id,
            name=product.name,
            price=product.price,
            sizes=[SizeStockResponse(size=s.label, stock=s.stock) for s in product.sizes],
        )


class ProductResponse(CamelModel):
    success: bool = True
    product: ProductStockResponse


class ProductListResponse(CamelModel):
    success: bool = True
    count: int
    products: list[ProductStockResponse]

"""
Order Service — FastAPI entry point

Order placement, admin cancellation and status changes, and account
deletion with inventory restoration. Commands go through OrderService /
AccountCascadeCoordinator; GET endpoints read straight from the tables.

Run with:  uvicorn --factory app.main:create_app
"""

import logging
from contextlib import asynccontextmanager
from uuid import UUID

import redis.asyncio as aioredis
from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncEngine
from sqlalchemy.orm import sessionmaker
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import event_store, queries
from .accounts import AccountCascadeCoordinator
from .commands import OrderService
from .config import Settings, configure_logging
from .database import create_engine, create_schema, create_session_factory
from .dependencies import (
    current_account,
    get_cascade_coordinator,
    get_order_service,
    get_session_factory,
    require_admin,
)
from .errors import ErrorKind, OrderServiceError, ValidationError
from .models import Account
from .schemas import (
    AdminOrderResponse,
    CancelOrderRequest,
    CancelOrderResponse,
    CreateOrderRequest,
    CreateOrderResponse,
    DeleteAccountResponse,
    ErrorResponse,
    OrderListResponse,
    OrderPageResponse,
    OrderResponse,
    ProductListResponse,
    ProductResponse,
    ProductStockResponse,
    UpdateStatusRequest,
    UpdateStatusResponse,
)
from .status import OrderStatus

logger = logging.getLogger(__name__)

router = APIRouter()


def create_app(
    settings: Settings | None = None,
    *,
    engine: AsyncEngine | None = None,
    redis: aioredis.Redis | None = None,
) -> FastAPI:
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level)
    owns_engine = engine is None
    engine = engine or create_engine(settings.database_url)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owns_redis = app.state.redis is None
        if owns_redis:
            app.state.redis = aioredis.from_url(settings.redis_url, decode_responses=True)
        if settings.create_schema:
            await create_schema(engine)
        yield
        if owns_redis:
            await app.state.redis.aclose()
        if owns_engine:
            await engine.dispose()

    app = FastAPI(title="Order Service", lifespan=lifespan)
    app.state.engine = engine
    app.state.session_factory = create_session_factory(engine)
    app.state.redis = redis

    app.add_exception_handler(OrderServiceError, _handle_service_error)
    app.add_exception_handler(RequestValidationError, _handle_request_validation)
    app.add_exception_handler(StarletteHTTPException, _handle_http_error)
    app.include_router(router)
    return app


# ── Error mapping ────────────────────────────────


async def _handle_service_error(request: Request, exc: OrderServiceError) -> JSONResponse:
    if exc.kind is ErrorKind.PERSISTENCE:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    else:
        logger.info("%s %s rejected: %s", request.method, request.url.path, exc.message)
    body = ErrorResponse(message=exc.message, error=exc.kind.value)
    return JSONResponse(status_code=exc.status_code, content=body.model_dump())


async def _handle_request_validation(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = exc.errors()
    message = "Invalid request"
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ())[1:])
        message = f"{location}: {first['msg']}" if location else first["msg"]
    return await _handle_service_error(request, ValidationError(message))


async def _handle_http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": exc.detail},
        headers=getattr(exc, "headers", None),
    )


# ── Command Endpoints (write side) ───────────────


@router.post("/orders", status_code=201, response_model=CreateOrderResponse)
async def cmd_create_order(
    req: CreateOrderRequest,
    account: Account = Depends(current_account),
    service: OrderService = Depends(get_order_service),
):
    order = await service.create_order(account.id, req)
    return CreateOrderResponse(order=OrderResponse.from_order(order))


@router.api_route(
    "/orders/admin/cancel/{order_id}",
    methods=["PATCH", "PUT"],
    response_model=CancelOrderResponse,
)
async def cmd_cancel_order(
    order_id: UUID,
    req: CancelOrderRequest | None = None,
    _admin: Account = Depends(require_admin),
    service: OrderService = Depends(get_order_service),
):
    result = await service.cancel_order(order_id, req.reason if req else None)
    message = "Order cancelled successfully"
    if result.inventory_restored:
        message += " and inventory restored"
    return CancelOrderResponse(message=message, order=OrderResponse.from_order(result.order))


@router.put("/orders/{order_id}/status", response_model=UpdateStatusResponse)
async def cmd_update_status(
    order_id: UUID,
    req: UpdateStatusRequest,
    _admin: Account = Depends(require_admin),
    service: OrderService = Depends(get_order_service),
):
    order = await service.update_status(order_id, req.status)
    return UpdateStatusResponse(order=OrderResponse.from_order(order))


@router.delete("/users/{user_id}", response_model=DeleteAccountResponse)
async def cmd_delete_account(
    user_id: UUID,
    _admin: Account = Depends(require_admin),
    coordinator: AccountCascadeCoordinator = Depends(get_cascade_coordinator),
):
    result = await coordinator.delete_account(user_id)
    return DeleteAccountResponse(
        message=f"User and {result.orders_deleted} associated orders deleted successfully.",
        restored_inventory=True,
    )


# ── Query Endpoints (read side) ──────────────────


@router.get("/orders/my-orders", response_model=OrderListResponse)
@router.get("/orders/myorders", response_model=OrderListResponse, include_in_schema=False)
async def query_my_orders(
    account: Account = Depends(current_account),
    session_factory: sessionmaker = Depends(get_session_factory),
):
    async with session_factory() as session:
        listed = await queries.list_orders(session, user_id=account.id)
    return OrderListResponse(
        count=len(listed), orders=[OrderResponse.from_order(o) for o in listed]
    )


@router.get("/orders/admin", response_model=OrderPageResponse)
async def query_admin_orders(
    status: str | None = None,
    sort: str = "newest",
    page: int = 1,
    limit: int = 10,
    _admin: Account = Depends(require_admin),
    session_factory: sessionmaker = Depends(get_session_factory),
):
    if page < 1 or limit < 1:
        raise ValidationError("page and limit must be positive")
    if sort not in queries.SORT_OPTIONS:
        raise ValidationError(f"Unknown sort option: {sort}")
    async with session_factory() as session:
        result = await queries.page_orders(
            session, status=_parse_status_filter(status), sort=sort, page=page, limit=limit
        )
    return OrderPageResponse(
        total_orders=result["total"],
        total_pages=result["pages"],
        current_page=result["page"],
        orders=[
            AdminOrderResponse.from_order_and_account(o, result["accounts"].get(o.user_id))
            for o in result["orders"]
        ],
        summary=result["summary"],
    )


@router.get("/orders/{order_id}", response_model=CreateOrderResponse)
async def query_get_order(
    order_id: UUID,
    account: Account = Depends(current_account),
    session_factory: sessionmaker = Depends(get_session_factory),
):
    async with session_factory() as session:
        order = await queries.get_order(session, order_id)
    if order is None:
        raise HTTPException(404, "Order not found")
    if order.user_id != account.id and not account.is_admin:
        raise HTTPException(403, "Not authorized to access this order")
    return CreateOrderResponse(order=OrderResponse.from_order(order))


@router.get("/products", response_model=ProductListResponse)
async def query_list_products(session_factory: sessionmaker = Depends(get_session_factory)):
    async with session_factory() as session:
        listed = await queries.list_products(session)
    return ProductListResponse(
        count=len(listed), products=[ProductStockResponse.from_product(p) for p in listed]
    )


@router.get("/products/{product_id}", response_model=ProductResponse)
async def query_get_product(
    product_id: UUID, session_factory: sessionmaker = Depends(get_session_factory)
):
    async with session_factory() as session:
        product = await queries.get_product(session, product_id)
    if product is None:
        raise HTTPException(404, "Product not found")
    return ProductResponse(product=ProductStockResponse.from_product(product))


# ── Event Store (audit) ──────────────────────────


@router.get("/events")
async def get_all_events(
    _admin: Account = Depends(require_admin),
    session_factory: sessionmaker = Depends(get_session_factory),
):
    async with session_factory() as session:
        return await event_store.load_all_events(session)


@router.get("/events/{aggregate_id}")
async def get_aggregate_events(
    aggregate_id: UUID,
    _admin: Account = Depends(require_admin),
    session_factory: sessionmaker = Depends(get_session_factory),
):
    async with session_factory() as session:
        return await event_store.load_events(session, aggregate_id)


@router.get("/health")
async def health():
    return {"status": "ok", "service": "order-service"}


def _parse_status_filter(value: str | None) -> OrderStatus | None:
    if value is None or value.lower() == "all":
        return None
    for status in OrderStatus:
        if status.value.lower() == value.lower():
            return status
    raise ValidationError(f"Invalid status value: {value}")

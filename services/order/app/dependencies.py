"""
Order Service — FastAPI dependencies

Everything a route needs is built from app.state per request; there are no
module-level engines or connections.

Authentication itself is handled upstream. The gateway forwards the
authenticated user's id in the X-User-Id header and this module resolves it
to an account (and its admin flag).
"""

from uuid import UUID

from fastapi import Depends, Header, HTTPException, Request
from sqlalchemy.orm import sessionmaker

from . import queries
from .accounts import AccountCascadeCoordinator
from .commands import OrderService
from .models import Account
from .publisher import EventPublisher


def get_session_factory(request: Request) -> sessionmaker:
    return request.app.state.session_factory


def get_publisher(request: Request) -> EventPublisher:
    return EventPublisher(request.app.state.redis)


def get_order_service(
    session_factory: sessionmaker = Depends(get_session_factory),
    publisher: EventPublisher = Depends(get_publisher),
) -> OrderService:
    return OrderService(session_factory, publisher)


def get_cascade_coordinator(
    session_factory: sessionmaker = Depends(get_session_factory),
    publisher: EventPublisher = Depends(get_publisher),
) -> AccountCascadeCoordinator:
    return AccountCascadeCoordinator(session_factory, publisher)


async def current_account(
    x_user_id: str | None = Header(default=None),
    session_factory: sessionmaker = Depends(get_session_factory),
) -> Account:
    if not x_user_id:
        raise HTTPException(401, "Not authorized. Please login.")
    try:
        user_id = UUID(x_user_id)
    except ValueError:
        raise HTTPException(401, "Not authorized. Token invalid.") from None

    async with session_factory() as session:
        account = await queries.get_account(session, user_id)
    if account is None:
        raise HTTPException(401, "User not found")
    return account


async def require_admin(account: Account = Depends(current_account)) -> Account:
    if not account.is_admin:
        raise HTTPException(403, "Access denied. Admin privileges required.")
    return account

"""
Order Service — event store

Append-only log of everything that happened to an order or account. Events
are written inside the same transaction as the state change they describe,
so the log and the tables never disagree. (aggregate_id, version) is unique:
two transactions appending to the same aggregate concurrently cannot both
commit.
"""

from datetime import datetime, timezone
from uuid import UUID

from pydantic import BaseModel
from sqlalchemy import func, insert, select
from sqlalchemy.ext.asyncio import AsyncSession

from .tables import event_store


async def current_version(session: AsyncSession, aggregate_id: UUID) -> int:
    result = await session.execute(
        select(func.max(event_store.c.version)).where(
            event_store.c.aggregate_id == str(aggregate_id)
        )
    )
    return result.scalar() or 0


async def append_event(
    session: AsyncSession,
    aggregate_id: UUID,
    aggregate_type: str,
    event: BaseModel,
) -> int:
    new_version = await current_version(session, aggregate_id) + 1
    await session.execute(
        insert(event_store).values(
            aggregate_id=str(aggregate_id),
            aggregate_type=aggregate_type,
            event_type=type(event).__name__,
            event_data=event.model_dump(mode="json"),
            version=new_version,
            created_at=datetime.now(timezone.utc),
        )
    )
    return new_version


async def has_event(session: AsyncSession, aggregate_id: UUID, event_type: str) -> bool:
    result = await session.execute(
        select(event_store.c.id)
        .where(
            event_store.c.aggregate_id == str(aggregate_id),
            event_store.c.event_type == event_type,
        )
        .limit(1)
    )
    return result.first() is not None


async def load_events(
    session: AsyncSession,
    aggregate_id: UUID,
) -> list[dict]:
    result = await session.execute(
        select(event_store)
        .where(event_store.c.aggregate_id == str(aggregate_id))
        .order_by(event_store.c.version.asc())
    )
    return [_to_dict(row) for row in result.fetchall()]


async def load_all_events(session: AsyncSession) -> list[dict]:
    result = await session.execute(
        select(event_store).order_by(
            event_store.c.created_at.asc(), event_store.c.version.asc()
        )
    )
    return [_to_dict(row) for row in result.fetchall()]


def _to_dict(row) -> dict:
    return {
        "aggregate_id": row.aggregate_id,
        "aggregate_type": row.aggregate_type,
        "event_type": row.event_type,
        "event_data": row.event_data,
        "version": row.version,
        "created_at": row.created_at.isoformat() if row.created_at else None,
    }

"""
Order Service — event publishing over Redis Pub/Sub

Events go out only after their transaction committed. Pub/Sub is
fire-and-forget: a publish failure is logged and does not undo the commit.
"""

import json
import logging

import redis.asyncio as aioredis
from pydantic import BaseModel
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)

ORDER_EVENTS = "order_events"
INVENTORY_EVENTS = "inventory_events"
ACCOUNT_EVENTS = "account_events"


class EventPublisher:
    def __init__(self, redis: aioredis.Redis):
        self.redis = redis

    async def publish(self, channel: str, event: BaseModel) -> None:
        event_type = type(event).__name__
        message = json.dumps(
            {
                "event_type": event_type,
                "data": event.model_dump(mode="json"),
            },
            default=str,
        )
        try:
            await self.redis.publish(channel, message)
        except RedisError:
            logger.exception("Failed to publish %s on %s", event_type, channel)

    async def publish_all(self, channel: str, events: list[BaseModel]) -> None:
        for event in events:
            await self.publish(channel, event)

import json
import logging
import redis
import redis.asyncio as aioredis
from typing import Any, AsyncGenerator, Dict, Iterable, Optional
from pydantic import BaseModel

from chatly.config import settings

logger = logging.getLogger(__name__)

# Initialize Redis connection (lazy: no network I/O until first command)
r = redis.from_url(settings.REDIS_URL, decode_responses=True)

TABLES = ("social_contacts", "conversations", "messages")
EVENTS = ("INSERT", "UPDATE", "DELETE")


def _channel(table: str, platform_client_id: int) -> str:
    """Generate the pub/sub channel carrying one tenant's changes to one table"""
    return f"realtime:{table}:{platform_client_id}"


def build_event(
    table: str,
    event: str,
    platform_client_id: int,
    new: Optional[BaseModel] = None,
    old_id: Optional[int] = None,
) -> Dict[str, Any]:
    """
    Build the JSON-ready change event delivered to subscribers.

    Args:
        table: Table name, one of TABLES
        event: "INSERT", "UPDATE" or "DELETE"
        platform_client_id: Tenant the row belongs to
        new: Row after the change (None for DELETE)
        old_id: Id of the removed row (DELETE only)

    Returns:
        {"table": ..., "event": ..., "platform_client_id": ..., "new": {...} | None, "old": {"id": ...} | None}
    """
    if table not in TABLES:
        raise ValueError(f"Unknown table: {table}")
    if event not in EVENTS:
        raise ValueError(f"Unknown event: {event}")

    return {
        "table": table,
        "event": event,
        "platform_client_id": platform_client_id,
        "new": new.model_dump(mode="json") if new is not None else None,
        "old": {"id": old_id} if old_id is not None else None,
    }


def publish_change(
    table: str,
    event: str,
    platform_client_id: int,
    new: Optional[BaseModel] = None,
    old_id: Optional[int] = None,
) -> int:
    """
    Publish a row change to the tenant's channel. Best effort: a Redis
    failure is logged and reported as zero receivers, never raised.

    Returns:
        int: Number of subscribers that received the event
    """
    if not settings.REALTIME_ENABLED:
        return 0

    payload = build_event(table, event, platform_client_id, new=new, old_id=old_id)
    try:
        return r.publish(_channel(table, platform_client_id), json.dumps(payload))
    except redis.RedisError as e:
        logger.warning("Realtime publish failed for %s/%s (tenant %s): %s", table, event, platform_client_id, e)
        return 0


async def subscribe(
    platform_client_id: int,
    tables: Iterable[str] = TABLES,
) -> AsyncGenerator[Dict[str, Any], None]:
    """
    Yield change events for one tenant until the consumer stops iterating.

    Args:
        platform_client_id: Tenant to follow
        tables: Subset of TABLES to follow
    """
    tables = [t for t in tables if t in TABLES]
    if not tables:
        raise ValueError("No known table to subscribe to")

    client = aioredis.from_url(settings.REDIS_URL, decode_responses=True)
    pubsub = client.pubsub()
    await pubsub.subscribe(*[_channel(t, platform_client_id) for t in tables])
    logger.debug("Subscribed tenant %s to %s", platform_client_id, ", ".join(tables))

    try:
        async for message in pubsub.listen():
            if message.get("type") != "message":
                continue
            try:
                yield json.loads(message["data"])
            except json.JSONDecodeError:
                logger.warning("Dropping malformed realtime payload on %s", message.get("channel"))
    finally:
        await pubsub.unsubscribe()
        await pubsub.aclose()
        await client.aclose()

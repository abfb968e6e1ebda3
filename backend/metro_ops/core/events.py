import asyncio
import json
import logging
from typing import Awaitable, Callable, Optional, Tuple

import redis.asyncio as redis
from fastapi import WebSocketDisconnect
from redis.exceptions import RedisError

from .config import settings
from .security import Role
from .websocket import ConnectionManager

logger = logging.getLogger(__name__)

INCIDENT_EVENTS_CHANNEL = "metro_incident_events"
RELAY_RETRY_SECONDS = 5.0

Notifier = Callable[[dict], Awaitable[None]]

redis_client = (
    redis.from_url(settings.REDIS_URL, encoding="utf-8", decode_responses=True)
    if settings.REDIS_URL
    else None
)


def reviewer_roles_for(status: str) -> Tuple[Role, ...]:
    """Which reviewer roles should hear about an incident in ``status``."""
    if status == "PENDING_CAPTAIN":
        return (Role.CAPTAIN,)
    if status == "PENDING_ADMIN":
        return (Role.ADMIN,)
    if status in ("APPROVED", "REJECTED"):
        return (Role.CAPTAIN, Role.ADMIN)
    return ()


def incident_event(kind: str, incident, actor_id: int) -> dict:
    return {
        "type": kind,
        "incident_id": incident.id,
        "status": incident.status,
        "actor_id": actor_id,
    }


class RedisNotifier:
    def __init__(self, client: redis.Redis, channel: str = INCIDENT_EVENTS_CHANNEL):
        self.client = client
        self.channel = channel

    async def __call__(self, event: dict) -> None:
        try:
            await self.client.publish(self.channel, json.dumps(event))
        except RedisError as e:
            logger.warning("Could not publish %s for incident %s: %s",
                           event.get("type"), event.get("incident_id"), e)


async def discard_event(event: dict) -> None:
    logger.debug("Notifications disabled, dropping %s", event.get("type"))


def get_notifier() -> Notifier:
    if redis_client is None:
        return discard_event
    return RedisNotifier(redis_client)


async def dispatch_event(event: dict, connections: ConnectionManager):
    roles = reviewer_roles_for(event.get("status", ""))
    if roles:
        await connections.broadcast(event, roles)


async def relay_incident_events(
    client: Optional[redis.Redis],
    connections: ConnectionManager,
    retry_delay: float = RELAY_RETRY_SECONDS,
):
    """Forward published incident events to connected reviewers until cancelled.

    A malformed message or a socket that drops mid-send is logged and skipped.
    If the redis connection is lost the channel is resubscribed after
    ``retry_delay`` seconds.
    """
    if client is None:
        return
    while True:
        pubsub = client.pubsub()
        try:
            await pubsub.subscribe(INCIDENT_EVENTS_CHANNEL)
            async for message in pubsub.listen():
                if message["type"] == "message":
                    await relay_message(message["data"], connections)
            return
        except RedisError:
            logger.exception("Lost subscription to %s, retrying in %ss", INCIDENT_EVENTS_CHANNEL, retry_delay)
        finally:
            await pubsub.aclose()
        await asyncio.sleep(retry_delay)


async def relay_message(data, connections: ConnectionManager):
    try:
        event = json.loads(data)
        if not isinstance(event, dict):
            raise ValueError("event is not a JSON object")
        await dispatch_event(event, connections)
    except (ValueError, WebSocketDisconnect) as e:
        logger.warning("Skipping incident event %r: %s", data, e)

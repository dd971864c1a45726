"""
Notification sinks for arena events.

Events are fire-and-forget: a sink never raises into the code that published
the event. The Redis sink publishes JSON payloads on a pub/sub channel that a
push gateway relays to connected clients.
"""

import json
import logging
from typing import Any, Dict, Optional

from redis.exceptions import RedisError

from arena.config import Config
from arena.utils.redis_utils import RedisUtils

logger = logging.getLogger(__name__)


class EventSink:
    """Base class for event sinks. Subclasses implement _deliver."""

    async def publish(self, event_name: str, payload: Dict[str, Any]) -> bool:
        """
        Publish an event, swallowing delivery errors.

        Returns:
            True if the event was delivered
        """
        try:
            await self._deliver(event_name, payload)
            return True
        except (RedisError, OSError, TypeError, ValueError) as e:
            logger.error(f"Failed to publish event '{event_name}': {e}", exc_info=True)
            return False

    async def _deliver(self, event_name: str, payload: Dict[str, Any]) -> None:
        raise NotImplementedError

    async def close(self):
        pass


class NullEventSink(EventSink):
    """Discards every event."""

    async def _deliver(self, event_name: str, payload: Dict[str, Any]) -> None:
        logger.debug(f"Discarding event '{event_name}'")


class RedisEventSink(EventSink):
    """Publishes events as JSON messages on a Redis channel."""

    def __init__(self, channel: Optional[str] = None, redis_client=None):
        self.channel = channel or Config.NOTIFICATION_CHANNEL
        self.redis_client = redis_client
        self.redis_enabled = True

    async def _get_redis_client(self):
        """Get Redis client lazily. Returns None if Redis is unavailable."""
        if not self.redis_enabled:
            return None

        if self.redis_client is None:
            self.redis_client = await RedisUtils.create_redis_client()
            if self.redis_client is None:
                logger.warning("No Redis connection available. Arena events will not be published.")
                self.redis_enabled = False
        return self.redis_client

    async def _deliver(self, event_name: str, payload: Dict[str, Any]) -> None:
        client = await self._get_redis_client()
        if client is None:
            return
        message = json.dumps({'event': event_name, 'data': payload}, default=str)
        receivers = await client.publish(self.channel, message)
        logger.debug(f"Published '{event_name}' to {self.channel} ({receivers} receiver(s))")

    async def close(self):
        """Clean up Redis connection."""
        if self.redis_client is not None:
            await self.redis_client.aclose()
            self.redis_client = None

"""
"Deliver to user X" broker.

The notifier never touches the SSE registry or the socket rooms directly;
it publishes to a broker, and every process hands broker messages to its
own local delivery handler. With a single process the :class:`LocalBroker`
calls the handler in-line. With several processes the :class:`RedisBroker`
relays through Redis pub/sub so the process holding a user's connection
receives the message no matter which process created the notification.
"""

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

import redis.asyncio as redis

from workpulse.config import Settings

logger = logging.getLogger(__name__)

CHANNEL_PREFIX = "workpulse:notify:"
RECONNECT_DELAY = 5.0

DeliveryHandler = Callable[[str, Dict[str, Any]], Awaitable[Any]]


class LocalBroker:
    """In-process broker: publish runs the local handler directly."""

    name = "local"

    def __init__(self):
        self._handler: Optional[DeliveryHandler] = None

    def set_handler(self, handler: DeliveryHandler) -> None:
        self._handler = handler

    async def start(self) -> None:
        logger.info("Using in-process notification broker")

    async def stop(self) -> None:
        pass

    async def publish(self, user_id: str, payload: Dict[str, Any]) -> Any:
        if self._handler is None:
            logger.warning("Broker has no delivery handler, dropping message")
            return None
        return await self._handler(str(user_id), payload)


class RedisBroker:
    """Redis pub/sub broker shared by every process of the deployment."""

    name = "redis"

    def __init__(
        self,
        redis_url: str,
        client: Optional[redis.Redis] = None,
        reconnect_delay: float = RECONNECT_DELAY,
    ):
        self.redis_url = redis_url
        self.reconnect_delay = reconnect_delay
        self.redis_client: Optional[redis.Redis] = client
        self.pubsub = None
        self._handler: Optional[DeliveryHandler] = None
        self._listener: Optional[asyncio.Task] = None

    def set_handler(self, handler: DeliveryHandler) -> None:
        self._handler = handler

    async def start(self) -> None:
        """Connect and listen on ``workpulse:notify:*``."""
        if self.redis_client is None:
            self.redis_client = redis.from_url(self.redis_url)
        await self.redis_client.ping()
        self.pubsub = self.redis_client.pubsub()
        await self.pubsub.psubscribe(f"{CHANNEL_PREFIX}*")
        self._listener = asyncio.create_task(self._listen())
        logger.info(f"Redis notification broker connected ({self.redis_url})")

    async def stop(self) -> None:
        if self._listener is not None:
            self._listener.cancel()
            try:
                await self._listener
            except asyncio.CancelledError:
                pass
            except Exception as e:
                logger.error(f"Redis listener ended with an error: {e}")
            self._listener = None
        if self.pubsub is not None:
            try:
                await self.pubsub.punsubscribe()
            except (redis.RedisError, OSError) as e:
                logger.warning(f"Redis punsubscribe failed during shutdown: {e}")
            await self.pubsub.aclose()
            self.pubsub = None
        if self.redis_client is not None:
            await self.redis_client.aclose()
            self.redis_client = None
        logger.info("Redis notification broker disconnected")

    async def publish(self, user_id: str, payload: Dict[str, Any]) -> int:
        """Publish to the user's channel; returns the number of listening processes."""
        if self.redis_client is None:
            raise RuntimeError("RedisBroker.publish called before start()")
        return await self.redis_client.publish(
            f"{CHANNEL_PREFIX}{user_id}", json.dumps(payload, default=str)
        )

    async def _listen(self) -> None:
        """Relay pattern messages to the handler until the stream ends.

        A dropped connection is logged and listening resumes after
        ``reconnect_delay``; redis-py reconnects and restores the pattern
        subscription on the next read.
        """
        while True:
            try:
                async for message in self.pubsub.listen():
                    if message.get("type") != "pmessage":
                        continue
                    await self.dispatch(message["channel"], message["data"])
                return
            except Exception as e:
                logger.error(
                    f"Redis listener lost its connection, retrying in {self.reconnect_delay}s: {e}",
                    exc_info=True,
                )
            await asyncio.sleep(self.reconnect_delay)

    async def dispatch(self, channel: Any, data: Any) -> None:
        """Decode one Redis message and hand it to the local handler."""
        try:
            if isinstance(channel, bytes):
                channel = channel.decode("utf-8")
            if isinstance(data, bytes):
                data = data.decode("utf-8")
            user_id = channel[len(CHANNEL_PREFIX):]
            payload = json.loads(data)
        except (ValueError, UnicodeDecodeError) as e:
            logger.error(f"Discarding malformed broker message on {channel}: {e}")
            return

        if self._handler is None:
            return
        try:
            await self._handler(user_id, payload)
        except Exception as e:
            logger.error(f"Local delivery for user {user_id} failed: {e}", exc_info=True)


def build_broker(settings: Settings):
    """Pick the Redis broker when ``REDIS_URL`` is configured."""
    if settings.REDIS_URL:
        return RedisBroker(settings.REDIS_URL)
    return LocalBroker()

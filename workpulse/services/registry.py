"""
In-process registry of open server-sent-event connections, keyed by user id.

Each open ``GET /api/events`` response owns one :class:`SseChannel`; the
registry maps a user id to every channel that user currently has open
(several tabs or devices are allowed). Publishing to a user with no open
channel is a silent no-op: the durable notification record is the
fallback, not a queue.

The registry is process-local. Cross-process delivery goes through the
broker (see ``workpulse.services.broker``), which calls :meth:`publish`
on whichever process holds the connection.
"""

import asyncio
import logging
from typing import Any, AsyncIterator, Dict, List, Optional, Protocol

from workpulse.exceptions import ChannelClosedError

logger = logging.getLogger(__name__)


class Channel(Protocol):
    def send(self, event: Dict[str, Any]) -> bool: ...


class SseChannel:
    """A send-capable handle for one open event-stream response.

    ``send`` never blocks: events go onto a bounded queue that the
    response generator drains. When the queue is full the event is
    dropped for this connection only.
    """

    def __init__(self, user_id: str, maxsize: int = 100):
        self.user_id = user_id
        self._queue: "asyncio.Queue[Optional[Dict[str, Any]]]" = asyncio.Queue(maxsize=maxsize)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def send(self, event: Dict[str, Any]) -> bool:
        """Queue an event for the client. Returns False if it was dropped."""
        if self._closed:
            raise ChannelClosedError(self.user_id)
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            logger.warning(f"SSE queue full for user {self.user_id}, dropping event")
            return False
        return True

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        # Wake a pending reader so the iterator can finish.
        try:
            self._queue.put_nowait(None)
        except asyncio.QueueFull:
            pass

    async def events(self) -> AsyncIterator[Dict[str, Any]]:
        """Yield queued events until the channel is closed."""
        while True:
            event = await self._queue.get()
            if event is None:
                return
            yield event
            # close() could not enqueue its sentinel into a full queue
            if self._closed and self._queue.empty():
                return


class SubscriptionRegistry:
    """Maps user id → channels, in registration order.

    Constructed once per process in the application lifespan and handed
    to routes through a dependency. Single event loop, so no locking;
    :meth:`publish` iterates a snapshot so register/unregister during a
    publish cannot corrupt the iteration.
    """

    def __init__(self):
        self._channels: Dict[str, List[Channel]] = {}

    def register(self, user_id: str, channel: Channel) -> None:
        channels = self._channels.setdefault(str(user_id), [])
        if any(existing is channel for existing in channels):
            return
        channels.append(channel)
        logger.info(f"SSE channel registered for user {user_id} ({len(channels)} open)")

    def unregister(self, user_id: str, channel: Channel) -> None:
        user_id = str(user_id)
        channels = self._channels.get(user_id)
        if not channels:
            return
        remaining = [existing for existing in channels if existing is not channel]
        if len(remaining) == len(channels):
            return
        if remaining:
            self._channels[user_id] = remaining
        else:
            del self._channels[user_id]
        logger.info(f"SSE channel unregistered for user {user_id} ({len(remaining)} open)")

    def publish(self, user_id: str, payload: Dict[str, Any]) -> int:
        """Send ``{"type": "notification", **payload}`` to every channel of a user.

        Returns the number of channels that accepted the event. A channel
        that raises is treated as dead: logged, unregistered, skipped.
        """
        user_id = str(user_id)
        targets = list(self._channels.get(user_id, ()))
        if not targets:
            return 0

        event: Dict[str, Any] = {"type": "notification"}
        event.update((key, value) for key, value in payload.items() if key != "type")

        delivered = 0
        for channel in targets:
            try:
                if channel.send(dict(event)) is not False:
                    delivered += 1
            except Exception as e:
                logger.warning(f"Dropping dead SSE channel for user {user_id}: {e}")
                self.unregister(user_id, channel)
        return delivered

    def connection_count(self, user_id: Optional[str] = None) -> int:
        if user_id is not None:
            return len(self._channels.get(str(user_id), ()))
        return sum(len(channels) for channels in self._channels.values())

    def user_ids(self) -> List[str]:
        return list(self._channels)

    def clear(self) -> None:
        """Close and drop every channel (used at shutdown)."""
        for channels in self._channels.values():
            for channel in channels:
                close = getattr(channel, "close", None)
                if close is not None:
                    close()
        self._channels.clear()

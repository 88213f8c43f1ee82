"""
Notifier — the single entry point domain code calls to notify a user.

``notify`` writes the durable record first, then fans out to every delivery
channel the recipient may have: live channels (event streams and socket
rooms, reached through the broker) and browser push subscriptions.
Delivery is at-most-once and best-effort: each channel gets one attempt,
failures are logged and never reach the caller, and nothing is retried.
A recipient who is offline everywhere still finds the notification in
``GET /api/notifications``.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from workpulse.exceptions import NotificationValidationError, PersistenceError
from workpulse.models.notification import Notification
from workpulse.schemas.notification import serialize_notification
from workpulse.services.push import PushSender, PushSubscriptionStore, build_push_payload, deliver_push
from workpulse.services.realtime import RoomManager, room_for
from workpulse.services.registry import SubscriptionRegistry

logger = logging.getLogger(__name__)


@dataclass
class DeliveryReport:
    sse: int = 0
    socket: int = 0
    push: int = 0


class LocalDelivery:
    """Broker handler: delivers one notification to this process's live channels."""

    def __init__(self, registry: SubscriptionRegistry, rooms: RoomManager):
        self.registry = registry
        self.rooms = rooms

    async def __call__(self, user_id: str, payload: Dict[str, Any]) -> DeliveryReport:
        report = DeliveryReport()

        # The event stream reserves "type"; the category travels as notificationType.
        stream_payload = dict(payload)
        stream_payload["notificationType"] = stream_payload.pop("type", None)
        try:
            report.sse = self.registry.publish(user_id, stream_payload)
        except Exception as e:
            logger.error(f"SSE delivery to user {user_id} failed: {e}")

        try:
            report.socket = await self.rooms.emit(room_for(user_id), "notification", payload)
        except Exception as e:
            logger.error(f"Socket emit to {room_for(user_id)} failed: {e}")

        return report


class Notifier:
    def __init__(self, db: AsyncSession, broker: Any, push_sender: PushSender):
        self.db = db
        self.broker = broker
        self.push_sender = push_sender

    async def notify(
        self,
        recipient_id: Optional[str],
        message: Optional[str],
        *,
        type: Optional[str] = None,
        link: Optional[str] = None,
        sender_id: Optional[str] = None,
    ) -> Notification:
        """Persist a notification for ``recipient_id`` and deliver it wherever possible.

        Raises:
            NotificationValidationError: recipient or message missing; nothing written.
            PersistenceError: the record could not be stored; nothing delivered.
        """
        if recipient_id is None or not str(recipient_id).strip():
            raise NotificationValidationError("recipientId")
        if message is None or not message.strip():
            raise NotificationValidationError("message")

        recipient_id = str(recipient_id).strip()
        notification = await self._persist(
            Notification(
                recipient_id=recipient_id,
                sender_id=str(sender_id) if sender_id else None,
                type=type or "system",
                message=message,
                link=link,
                read=False,
            )
        )

        payload = serialize_notification(notification)
        live, pushed = await asyncio.gather(
            self._deliver_live(recipient_id, payload),
            self._deliver_push(recipient_id, message, link),
        )

        report = DeliveryReport(push=pushed)
        if isinstance(live, DeliveryReport):
            report.sse, report.socket = live.sse, live.socket
        logger.info(
            f"Notification {notification.id} for user {recipient_id}: "
            f"sse={report.sse} socket={report.socket} push={report.push}"
        )
        return notification

    async def _persist(self, notification: Notification) -> Notification:
        try:
            self.db.add(notification)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Failed to save notification for user {notification.recipient_id}: {e}")
            raise PersistenceError("Failed to save notification") from e
        logger.debug(f"Notification saved: {notification.id}")
        return notification

    async def _deliver_live(self, recipient_id: str, payload: Dict[str, Any]) -> Any:
        try:
            return await self.broker.publish(recipient_id, payload)
        except Exception as e:
            logger.error(f"Live delivery to user {recipient_id} failed: {e}")
            return None

    async def _deliver_push(self, recipient_id: str, message: str, link: Optional[str]) -> int:
        try:
            return await deliver_push(
                PushSubscriptionStore(self.db),
                self.push_sender,
                recipient_id,
                build_push_payload(message, link),
            )
        except Exception as e:
            logger.error(f"Failed to send push notifications to user {recipient_id}: {e}")
            return 0

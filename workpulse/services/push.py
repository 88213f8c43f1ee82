"""Browser push delivery using pywebpush (VAPID), with a log-only fallback when keys are unset."""

import asyncio
import json
import logging
from typing import Any, Dict, List, Optional

from pywebpush import WebPushException, webpush
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from workpulse.config import Settings
from workpulse.exceptions import NotificationValidationError, PersistenceError
from workpulse.models.push_subscription import PushSubscription

logger = logging.getLogger(__name__)

# Push services answer 404/410 once a browser has dropped the subscription.
GONE_STATUSES = {404, 410}


def build_push_payload(message: str, link: Optional[str] = None, title: str = "New Notification") -> Dict[str, str]:
    return {"title": title, "message": message, "url": link or "/"}


class PushSubscriptionStore:
    """Persisted browser subscriptions, one per user (upsert by user id)."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def save(self, user_id: str, subscription: Dict[str, Any]) -> PushSubscription:
        """Store a subscription for a user, replacing any previous one."""
        if not user_id:
            raise NotificationValidationError("userId")
        if not subscription or not subscription.get("endpoint"):
            raise NotificationValidationError("subscription")

        try:
            record = await self._upsert(user_id, subscription)
        except IntegrityError:
            # Another request created the row first; overwrite it.
            await self.db.rollback()
            try:
                record = await self._upsert(user_id, subscription)
            except SQLAlchemyError as e:
                await self._fail(user_id, e)
        except SQLAlchemyError as e:
            await self._fail(user_id, e)

        await self.db.refresh(record)
        logger.info(f"Saved push subscription for user {user_id}")
        return record

    async def _upsert(self, user_id: str, subscription: Dict[str, Any]) -> PushSubscription:
        record = await self._get(user_id)
        if record is None:
            record = PushSubscription(user_id=str(user_id), subscription=subscription)
            self.db.add(record)
        else:
            record.subscription = subscription
        await self.db.commit()
        return record

    async def _fail(self, user_id: str, error: SQLAlchemyError) -> None:
        await self.db.rollback()
        logger.error(f"Failed to save push subscription for user {user_id}: {error}")
        raise PersistenceError("Failed to save subscription") from error

    async def list_for(self, user_id: str) -> List[PushSubscription]:
        result = await self.db.execute(
            select(PushSubscription).where(PushSubscription.user_id == str(user_id))
        )
        return list(result.scalars().all())

    async def delete(self, subscription_id: int) -> None:
        await self.db.execute(delete(PushSubscription).where(PushSubscription.id == subscription_id))
        await self.db.commit()

    async def _get(self, user_id: str) -> Optional[PushSubscription]:
        result = await self.db.execute(
            select(PushSubscription).where(PushSubscription.user_id == str(user_id))
        )
        return result.scalar_one_or_none()


class PushSender:
    """Sends one encrypted payload to one browser subscription."""

    def __init__(self, settings: Settings):
        self.public_key = settings.VAPID_PUBLIC_KEY
        self.private_key = settings.VAPID_PRIVATE_KEY
        self.contact = settings.VAPID_CONTACT_EMAIL
        self.timeout = settings.PUSH_TIMEOUT
        self.ttl = settings.PUSH_TTL

    @property
    def enabled(self) -> bool:
        return bool(self.private_key)

    def _send_sync(self, subscription: Dict[str, Any], data: str) -> None:
        """Blocking pywebpush call; runs in a worker thread."""
        webpush(
            subscription_info=subscription,
            data=data,
            vapid_private_key=self.private_key,
            # pywebpush adds aud/exp to the claims dict, so build a fresh one
            vapid_claims={"sub": f"mailto:{self.contact}"},
            timeout=self.timeout,
            ttl=self.ttl,
        )

    async def send(self, subscription: Dict[str, Any], payload: Dict[str, Any]) -> bool:
        """Deliver ``payload`` as JSON. Returns False when push is not configured."""
        data = json.dumps(payload)
        if not self.enabled:
            logger.info(f"Push disabled (no VAPID key), skipping {subscription.get('endpoint', '')[:60]}")
            return False

        # Run synchronous HTTP in a threadpool to avoid blocking the event loop
        await asyncio.to_thread(self._send_sync, subscription, data)
        return True


async def deliver_push(
    store: PushSubscriptionStore,
    sender: PushSender,
    user_id: str,
    payload: Dict[str, Any],
) -> int:
    """Push ``payload`` to every stored subscription of a user.

    Each subscription is attempted once and independently; a failure is
    logged and never stops the others. Subscriptions the push service
    reports as gone are removed.
    """
    subscriptions = await store.list_for(user_id)
    logger.debug(f"Found {len(subscriptions)} push subscriptions for user {user_id}")

    delivered = 0
    for sub in subscriptions:
        try:
            if await sender.send(sub.subscription, payload):
                delivered += 1
        except WebPushException as e:
            status = getattr(e.response, "status_code", None)
            logger.error(f"Web push to user {user_id} failed (status={status}): {e}")
            if status in GONE_STATUSES:
                try:
                    await store.delete(sub.id)
                    logger.info(f"Removed expired push subscription {sub.id} for user {user_id}")
                except SQLAlchemyError as delete_err:
                    logger.error(f"Failed to delete expired subscription {sub.id}: {delete_err}")
        except Exception as e:
            logger.error(f"Web push to user {user_id} failed: {e}")
    return delivered

"""Push subscription router — the browser registers where to receive web pushes."""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from workpulse.config import settings
from workpulse.database import get_db
from workpulse.exceptions import NotificationValidationError, PersistenceError
from workpulse.routers.auth import require_user
from workpulse.schemas.auth import CurrentUser
from workpulse.schemas.notification import PushSubscriptionIn
from workpulse.services.push import PushSubscriptionStore

router = APIRouter(prefix="/api/subscriptions", tags=["subscriptions"])


@router.post("")
async def save_subscription(
    body: PushSubscriptionIn,
    current_user: CurrentUser = Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    """Save or replace the caller's browser push subscription."""
    if not body.subscription:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Subscription required")

    try:
        await PushSubscriptionStore(db).save(current_user.id, body.subscription)
    except NotificationValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except PersistenceError:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to save subscription",
        )
    return {"success": True}


@router.get("/vapid-public-key")
async def vapid_public_key():
    """Application server key the browser passes to ``pushManager.subscribe``."""
    return {"publicKey": settings.VAPID_PUBLIC_KEY}

"""Notifications router — send, fetch, mark read, and admin delete."""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse
from sqlalchemy import delete, desc, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from workpulse.database import get_db
from workpulse.dependencies import get_notifier
from workpulse.exceptions import NotificationValidationError, PersistenceError
from workpulse.models.notification import Notification
from workpulse.models.notification_permission import NotificationPermission
from workpulse.routers.auth import require_admin, require_user
from workpulse.schemas.auth import CurrentUser
from workpulse.schemas.notification import (
    MarkRead,
    NotificationCreate,
    NotificationList,
    NotificationOut,
    PermissionIn,
    serialize_notification,
)
from workpulse.services.notifier import Notifier

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["notifications"])

LIST_LIMIT = 50


@router.post("/notifications/send", status_code=status.HTTP_201_CREATED)
async def send_notification(
    body: NotificationCreate,
    notifier: Notifier = Depends(get_notifier),
):
    """Store a notification and deliver it over every live channel of the recipient."""
    try:
        notif = await notifier.notify(
            body.recipient_id,
            body.message,
            type=body.type,
            link=body.link,
            sender_id=body.sender_id,
        )
    except NotificationValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except PersistenceError:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to send notification",
        )
    return {"success": True, "notification": serialize_notification(notif)}


@router.get("/notifications")
async def list_notifications(
    current_user: CurrentUser = Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    """Return the latest notifications + unread count for the current user."""
    count_result = await db.execute(
        select(func.count(Notification.id)).where(
            Notification.recipient_id == current_user.id,
            Notification.read == False,  # noqa: E712
        )
    )
    unread_count = count_result.scalar() or 0

    result = await db.execute(
        select(Notification)
        .where(Notification.recipient_id == current_user.id)
        .order_by(desc(Notification.created_at), desc(Notification.id))
        .limit(LIST_LIMIT)
    )
    notifs = result.scalars().all()

    return NotificationList(
        unread_count=unread_count,
        notifications=[NotificationOut.model_validate(n) for n in notifs],
    ).model_dump(mode="json", by_alias=True)


@router.patch("/notifications/read")
async def mark_read(
    body: MarkRead,
    current_user: CurrentUser = Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    """Mark one of the caller's notifications as read."""
    result = await db.execute(
        select(Notification).where(
            Notification.id == body.notification_id,
            Notification.recipient_id == current_user.id,
        )
    )
    notif = result.scalar_one_or_none()
    if not notif:
        raise HTTPException(status_code=404, detail="Not found")

    notif.read = True
    await db.commit()
    return {"success": True, "notif": serialize_notification(notif)}


@router.post("/notifications/read-all")
async def mark_all_read(
    current_user: CurrentUser = Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    """Mark all notifications as read for the current user."""
    result = await db.execute(
        update(Notification)
        .where(
            Notification.recipient_id == current_user.id,
            Notification.read == False,  # noqa: E712
        )
        .values(read=True)
    )
    await db.commit()
    return JSONResponse({"ok": True, "updated": result.rowcount})


@router.delete("/notifications/{notification_id}")
async def delete_notification(
    notification_id: int,
    admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(delete(Notification).where(Notification.id == notification_id))
    if not result.rowcount:
        raise HTTPException(status_code=404, detail="Notification not found")
    await db.commit()
    logger.info(f"Notification {notification_id} deleted by {admin.id}")
    return {"message": "Notification deleted successfully"}


@router.post("/notification-permission")
async def save_permission(
    body: PermissionIn,
    db: AsyncSession = Depends(get_db),
):
    """Record what the browser's notification permission prompt returned."""
    db.add(
        NotificationPermission(
            email=body.email,
            permission=body.notification_permission,
            time=body.time,
        )
    )
    await db.commit()
    return {"message": "Permission saved"}

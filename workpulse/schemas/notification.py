"""Notification Pydantic schemas — request bodies and JSON output."""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from workpulse.models.notification_permission import PermissionEnum


class CamelModel(BaseModel):
    """Accepts and emits camelCase keys, the shape the browser client uses."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class NotificationCreate(CamelModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    # Optional here so missing fields reach the notifier and fail with a 400
    recipient_id: Optional[str] = None
    sender_id: Optional[str] = None
    type: Optional[str] = None
    message: Optional[str] = None
    link: Optional[str] = None


class NotificationOut(CamelModel):
    id: int
    recipient_id: str
    sender_id: Optional[str] = None
    type: str
    message: str
    link: Optional[str] = None
    read: bool
    created_at: datetime


class NotificationList(CamelModel):
    unread_count: int
    notifications: List[NotificationOut]


class MarkRead(CamelModel):
    notification_id: int


class PushSubscriptionIn(BaseModel):
    subscription: Optional[Dict[str, Any]] = None


class PermissionIn(CamelModel):
    email: str = Field(min_length=3)
    notification_permission: PermissionEnum
    time: datetime


class SampleNotificationIn(CamelModel):
    recipient_id: Optional[str] = None
    message: Optional[str] = None


def serialize_notification(notification: Any) -> Dict[str, Any]:
    """JSON-ready camelCase dict for socket and event-stream delivery."""
    return NotificationOut.model_validate(notification).model_dump(mode="json", by_alias=True)

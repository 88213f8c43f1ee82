"""NotificationPermission model — what the browser permission prompt returned."""

import enum
from datetime import datetime

from sqlalchemy import DateTime, Enum, String
from sqlalchemy.orm import Mapped, mapped_column

from workpulse.database import Base


class PermissionEnum(str, enum.Enum):
    GRANTED = "granted"
    DENIED = "denied"
    DEFAULT = "default"


class NotificationPermission(Base):
    __tablename__ = "notification_permissions"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    permission: Mapped[PermissionEnum] = mapped_column(Enum(PermissionEnum), nullable=False)
    time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

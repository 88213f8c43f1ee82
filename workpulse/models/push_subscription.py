"""PushSubscription model — one browser push subscription per user."""

from datetime import datetime
from typing import Any, Dict

from sqlalchemy import JSON, DateTime, String, func
from sqlalchemy.orm import Mapped, mapped_column

from workpulse.database import Base


class PushSubscription(Base):
    __tablename__ = "push_subscriptions"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    # Unique: saving again for the same user overwrites the previous browser.
    user_id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True)
    subscription: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    @property
    def endpoint(self) -> str:
        return (self.subscription or {}).get("endpoint", "")

    def __repr__(self) -> str:
        return f"<PushSubscription user={self.user_id}>"

"""
WorkPulse – SQLAlchemy ORM models package.

Imports all model classes so the app can discover them
through a single ``import workpulse.models``.
"""

from workpulse.models.notification import Notification                       # noqa: F401
from workpulse.models.notification_permission import NotificationPermission   # noqa: F401
from workpulse.models.push_subscription import PushSubscription               # noqa: F401

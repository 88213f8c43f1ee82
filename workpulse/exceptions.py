"""WorkPulse error types for the notification delivery path."""


class WorkPulseError(Exception):
    """Base class for every error raised by this package."""


class NotificationValidationError(WorkPulseError):
    """A required field (recipient, message, user id) is missing."""

    def __init__(self, field: str):
        self.field = field
        super().__init__(f"{field} is required")


class PersistenceError(WorkPulseError):
    """A durable read or write failed; nothing was delivered."""


class DeliveryError(WorkPulseError):
    """A single delivery channel failed. Logged and swallowed by the notifier."""

    def __init__(self, channel: str, user_id: str, reason: str = ""):
        self.channel = channel
        self.user_id = user_id
        self.reason = reason
        super().__init__(f"{channel} delivery to {user_id} failed: {reason}".rstrip(": "))


class ChannelClosedError(DeliveryError):
    """Write attempted on an SSE channel whose client already went away."""

    def __init__(self, user_id: str):
        super().__init__("sse", user_id, "channel closed")

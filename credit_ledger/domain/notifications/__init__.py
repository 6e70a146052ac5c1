"""Change notification exports."""

from .feed import ADMIN_CHANNEL, ChangeFeed, FeedEvent
from .sink import FeedNotificationSink, NotificationSink, RecordingSink, emit

__all__ = [
    "ADMIN_CHANNEL",
    "ChangeFeed",
    "FeedEvent",
    "FeedNotificationSink",
    "NotificationSink",
    "RecordingSink",
    "emit",
]

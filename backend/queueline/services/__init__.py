# Services module

from queueline.services.notification_service import check_notification
from queueline.services.queue_service import QueueService
from queueline.services.saved_entry_service import SavedEntryService, serialize_saved_entry
from queueline.services.subscriptions import QueueSubscriptions, Subscription

__all__ = [
    "QueueService",
    "QueueSubscriptions",
    "SavedEntryService",
    "Subscription",
    "check_notification",
    "serialize_saved_entry",
]

from .background import *
from .cron import *

__all__ = [
    "deliver_notification_task",
    # Scheduled/Cron Tasks
    "poll_due_notifications_task",
    "reschedule_all_notifications_task",
]

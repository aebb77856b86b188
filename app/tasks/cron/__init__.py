from .reminder_poller import poll_due_notifications_task
from .reminder_rescheduler import reschedule_all_notifications_task

__all__ = [
    "poll_due_notifications_task",
    "reschedule_all_notifications_task",
]

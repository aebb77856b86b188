from celery.schedules import crontab
from .settings import settings

# Basic Celery Configuration
broker_url = f"redis://:{settings.REDIS_PASSWORD}@{settings.REDIS_HOST}:{settings.REDIS_PORT}/{settings.REDIS_DB}"
result_backend = f"redis://:{settings.REDIS_PASSWORD}@{settings.REDIS_HOST}:{settings.REDIS_PORT}/{settings.REDIS_DB}"

# Task Discovery
include = ["app.tasks"]

# Timezone Configuration
timezone = settings.TARGET_TIMEZONE
enable_utc = True

# Task Result Configuration
result_expires = 3600

# Task Serialization
task_serializer = "json"
accept_content = ["json"]
result_serializer = "json"

# Task Execution Configuration
task_track_started = True
task_time_limit = 10 * 60  # 10 minutes
task_soft_time_limit = 8 * 60  # 8 minutes

# Worker Configuration
worker_prefetch_multiplier = 1
worker_max_tasks_per_child = 1000

# Task Retry Configuration
task_acks_late = True
task_reject_on_worker_lost = True
task_default_retry_delay = 60  # 60 seconds
task_max_retries = 3

# Exponential Backoff Settings
task_retry_backoff = True
task_retry_backoff_max = 700  # Max 700 seconds
task_retry_jitter = False

# ETA tasks stay reserved by a worker until they fire; the visibility timeout
# must outlive the longest gap between two occurrences (one week).
broker_transport_options = {"visibility_timeout": 8 * 24 * 60 * 60}

# Beat schedule, in the target timezone
beat_schedule = {
    # Re-arm every active reminder once a day in case the broker lost an ETA task
    "daily-reminder-rescheduler": {
        "task": "app.tasks.cron.reminder_rescheduler.reschedule_all_notifications_task",
        "schedule": crontab(hour=0, minute=10),
        "args": ("reminder_rescheduler_cron",),
    },
}

if settings.SCHEDULER_MODE == "polling":
    beat_schedule = {
        # Minute-granularity polling with in-process dedup
        "minutely-reminder-poller": {
            "task": "app.tasks.cron.reminder_poller.poll_due_notifications_task",
            "schedule": crontab(minute="*"),
            "args": ("reminder_poller_cron",),
        },
        # Cancel-only in polling mode: drains ETA tasks left by the queue mode
        "daily-reminder-cleanup": {
            "task": "app.tasks.cron.reminder_rescheduler.reschedule_all_notifications_task",
            "schedule": crontab(hour=0, minute=10),
            "args": ("reminder_cleanup_cron",),
        },
    }

# Default Queue
task_default_queue = "reminders"

# Beat Scheduler Configuration
beat_schedule_filename = "tmp/celerybeat-schedule"

from celery import Celery

# Worker and beat entrypoint: `celery -A app.celery worker` / `celery -A app.celery beat`
celery = Celery("reminders")

# Broker, retry policy and beat schedule live in app.config.celeryconfig
celery.config_from_object("app.config.celeryconfig")

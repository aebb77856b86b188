import json
import uuid
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, List, Optional

from celery import Celery
from pydantic import BaseModel, Field
from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.db.models import ScheduledTask
from app.utils.datetime_utils import to_naive_utc, to_utc
from app.utils.errors import ConfigurationError, TaskQueueError
from app.utils.logging import get_logger

logger = get_logger()

DELIVERY_TASK_NAME = (
    "app.tasks.background.notification_delivery.deliver_notification_task"
)


class TaskHandle(BaseModel):
    id: str
    payload: Dict[str, str] = Field(default_factory=dict)
    fire_at: datetime
    callback_url: Optional[str] = None


class TaskQueue(ABC):
    """Delayed single-shot execution: run a callback at an instant, cancellable by handle."""

    @abstractmethod
    def create_task(
        self,
        callback_url: Optional[str],
        payload: Dict[str, str],
        fire_at: datetime,
        auth_token: Optional[str] = None,
    ) -> TaskHandle:
        pass

    @abstractmethod
    def list_tasks(self) -> List[TaskHandle]:
        pass

    @abstractmethod
    def delete_task(self, handle: TaskHandle) -> None:
        pass


class CeleryTaskQueue(TaskQueue):
    """
    Celery ETA tasks backed by a ``scheduled_tasks`` row per pending task.

    Celery cannot enumerate ETA tasks reliably across workers, so the table is
    the listing source; deleting a handle revokes the Celery task and drops
    the row.
    """

    def __init__(self, db_session: Session, celery_app: Celery):
        self.db = db_session
        self.celery = celery_app

    def create_task(
        self,
        callback_url: Optional[str],
        payload: Dict[str, str],
        fire_at: datetime,
        auth_token: Optional[str] = None,
    ) -> TaskHandle:
        if not self.celery.conf.broker_url:
            raise ConfigurationError(
                "No Celery broker is configured. Set REDIS_HOST/REDIS_PORT so reminders "
                "can be queued for delivery.",
                error_code="QUEUE_NOT_CONFIGURED",
            )

        task_id = str(uuid.uuid4())
        fire_at_utc = to_utc(fire_at)

        try:
            self.db.add(
                ScheduledTask(
                    id=task_id,
                    payload=json.dumps(payload),
                    fire_at=to_naive_utc(fire_at_utc),
                    callback_url=callback_url,
                )
            )
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise TaskQueueError(f"Failed to persist scheduled task: {e}") from e

        try:
            self.celery.send_task(
                DELIVERY_TASK_NAME,
                kwargs={
                    "request_id": f"scheduled-{task_id}",
                    "payload": payload,
                    "callback_url": callback_url,
                    "auth_token": auth_token,
                },
                eta=fire_at_utc,
                task_id=task_id,
            )
        except Exception as e:
            self._drop_row(task_id)
            raise TaskQueueError(f"Failed to enqueue delivery task: {e}") from e

        return TaskHandle(
            id=task_id, payload=payload, fire_at=fire_at_utc, callback_url=callback_url
        )

    def list_tasks(self) -> List[TaskHandle]:
        try:
            rows = self.db.scalars(
                select(ScheduledTask).order_by(ScheduledTask.fire_at)
            ).all()
        except SQLAlchemyError as e:
            raise TaskQueueError(f"Failed to list scheduled tasks: {e}") from e

        handles = []
        for row in rows:
            try:
                payload = json.loads(row.payload or "{}")
            except json.JSONDecodeError:
                logger.warning("Undecodable scheduled task payload", task_id=row.id)
                payload = {}
            handles.append(
                TaskHandle(
                    id=row.id,
                    payload={str(k): str(v) for k, v in payload.items()},
                    fire_at=to_utc(row.fire_at),
                    callback_url=row.callback_url,
                )
            )
        return handles

    def delete_task(self, handle: TaskHandle) -> None:
        try:
            self.celery.control.revoke(handle.id)
        except Exception as e:
            # The row still goes; the delivery task checks for its row before running
            logger.warning(
                "Failed to revoke Celery task", task_id=handle.id, error=str(e)
            )
        self._drop_row(handle.id)

    def has_task(self, task_id: str) -> bool:
        return self.db.get(ScheduledTask, task_id) is not None

    def complete_task(self, task_id: str) -> None:
        """Forget a task that has run. No revoke; a missing row is fine."""
        self._drop_row(task_id)

    def _drop_row(self, task_id: str) -> None:
        try:
            self.db.execute(delete(ScheduledTask).where(ScheduledTask.id == task_id))
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise TaskQueueError(f"Failed to delete scheduled task {task_id}: {e}") from e

import itertools
from datetime import datetime, timezone
from typing import Dict, Generator, List, Optional, Sequence
from unittest.mock import Mock

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.db.models import Base, Notification, User, UserDeviceToken, UserRole
from app.providers.push_transport import PushTransport
from app.providers.task_queue import TaskHandle, TaskQueue
from app.services.notifications.components import (
    ReminderComponents,
    create_reminder_components,
)
from app.services.notifications.fanout import BatchResult, PushMessage
from app.services.notifications.store import ReminderStore
from app.utils.datetime_utils import to_utc
from app.utils.errors import PushTransportError, TaskQueueError

# Tuesday 2024-01-02 08:00 in Karachi (UTC+5)
TUESDAY_8AM_UTC = datetime(2024, 1, 2, 3, 0, tzinfo=timezone.utc)


class FixedClock:
    """Callable clock returning a settable instant."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class FakePushTransport(PushTransport):
    """Records every batch; can fail whole batches or reject single tokens."""

    def __init__(self, max_batch_size: int = 500):
        self.max_batch_size = max_batch_size
        self.batches: List[List[PushMessage]] = []
        self.fail_batches = set()
        self.reject_tokens = set()

    def send_batch(self, messages: Sequence[PushMessage]) -> BatchResult:
        index = len(self.batches)
        self.batches.append(list(messages))
        if len(messages) > self.max_batch_size:
            raise ValueError("batch too large")
        if index in self.fail_batches:
            raise PushTransportError(f"batch {index} failed")
        failures = sum(1 for m in messages if m.token in self.reject_tokens)
        return BatchResult(
            success_count=len(messages) - failures, failure_count=failures
        )

    @property
    def sent_messages(self) -> List[PushMessage]:
        return [m for batch in self.batches for m in batch]


class InMemoryTaskQueue(TaskQueue):
    """Delayed-execution queue held in a dict, keyed by task id."""

    def __init__(self):
        self.tasks: Dict[str, TaskHandle] = {}
        self.created: List[TaskHandle] = []
        self.deleted: List[str] = []
        self.auth_tokens: Dict[str, Optional[str]] = {}
        self.fail_create = False
        self.fail_list = False
        self._ids = itertools.count(1)

    def create_task(self, callback_url, payload, fire_at, auth_token=None):
        if self.fail_create:
            raise TaskQueueError("queue unavailable")
        handle = TaskHandle(
            id=f"task-{next(self._ids)}",
            payload=dict(payload),
            fire_at=to_utc(fire_at),
            callback_url=callback_url,
        )
        self.tasks[handle.id] = handle
        self.created.append(handle)
        self.auth_tokens[handle.id] = auth_token
        return handle

    def list_tasks(self):
        if self.fail_list:
            raise TaskQueueError("queue unavailable")
        return sorted(self.tasks.values(), key=lambda h: h.fire_at)

    def delete_task(self, handle):
        self.tasks.pop(handle.id, None)
        self.deleted.append(handle.id)

    def pending_for(self, record_id: str) -> List[TaskHandle]:
        return [h for h in self.list_tasks() if h.payload.get("recordId") == record_id]


# Database setup
@pytest.fixture
def test_engine():
    """Create an in-memory SQLite engine shared across threads."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(test_engine) -> Generator[Session, None, None]:
    """Create a database session for each test."""
    session_maker = sessionmaker(bind=test_engine, expire_on_commit=False)
    session = session_maker()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(TUESDAY_8AM_UTC)


@pytest.fixture
def push_transport() -> FakePushTransport:
    return FakePushTransport()


@pytest.fixture
def task_queue() -> InMemoryTaskQueue:
    return InMemoryTaskQueue()


@pytest.fixture
def store(db_session) -> ReminderStore:
    return ReminderStore(db_session)


@pytest.fixture
def components(db_session, push_transport, task_queue, clock) -> ReminderComponents:
    """The full reminder pipeline over fakes."""
    return create_reminder_components(
        db_session, transport=push_transport, queue=task_queue, clock=clock
    )


@pytest.fixture
def mock_celery_task():
    """Mock Celery task for testing retry behavior."""
    mock_task = Mock()
    mock_task.request.retries = 0
    mock_task.request.id = "task-1"
    mock_task.max_retries = 3
    mock_task.retry = Mock(side_effect=Exception("Retry called"))
    return mock_task


# Test data factories
@pytest.fixture
def make_user(db_session):
    """Create users with device tokens and/or a legacy token."""
    counter = itertools.count(1)

    def _make_user(
        tokens: Sequence[str] = (),
        legacy_token: Optional[str] = None,
        role: UserRole = UserRole.USER,
        is_active: bool = True,
        name: Optional[str] = None,
    ) -> User:
        n = next(counter)
        user = User(
            name=name or f"User {n}",
            email=f"user{n}@habits.test",
            role=role,
            is_active=is_active,
            fcm_token=legacy_token,
        )
        for token in tokens:
            user.device_tokens.append(UserDeviceToken(token=token))
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make_user


@pytest.fixture
def make_notification(store):
    """Create reminder rows directly, without triggering any scheduling."""

    def _make_notification(
        time_of_day: str = "09:00",
        days_of_week: Sequence[int] = (3,),
        is_active: bool = True,
        title: str = "Drink water",
        body: str = "Stay hydrated",
    ) -> Notification:
        return store.create_notification(
            {
                "title": title,
                "body": body,
                "time_of_day": time_of_day,
                "days_of_week": list(days_of_week),
                "is_active": is_active,
            }
        )

    return _make_notification


@pytest.fixture
def api_client(db_session, components, monkeypatch) -> Generator[TestClient, None, None]:
    """FastAPI TestClient with the reminder pipeline and session overridden."""
    from app.config.settings import settings
    from app.db.session import get_sync_session
    from app.main import app
    from app.services.notifications.components import get_reminder_components

    monkeypatch.setattr(settings, "WEBHOOK_AUTH_TOKEN", "test-webhook-token")

    def _session_override():
        yield db_session

    app.dependency_overrides[get_sync_session] = _session_override
    app.dependency_overrides[get_reminder_components] = lambda: components
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()

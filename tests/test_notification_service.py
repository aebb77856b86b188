import threading
from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from app.schemas.notification_schemas import (
    CreateNotificationRequest,
    UpdateNotificationRequest,
)
from app.services.notification_service import NotificationService


@pytest.fixture
def service(components):
    return NotificationService(components)


def create_request(**overrides):
    values = {
        "title": "Drink water",
        "body": "Stay hydrated",
        "time": "9:00",
        "days_of_week": ["Mon", 3, "5"],
    }
    values.update(overrides)
    return CreateNotificationRequest(**values)


class TestRequestValidation:
    """Input normalization on the admin schemas."""

    def test_create_normalizes_time_and_days(self):
        request = create_request()
        assert request.time == "09:00"
        assert request.days_of_week == [1, 3, 5]

    def test_active_reminder_needs_days(self):
        with pytest.raises(ValidationError):
            create_request(days_of_week=[])

    def test_inactive_reminder_may_have_no_days(self):
        assert create_request(days_of_week=[], active=False).days_of_week == []

    @pytest.mark.parametrize("field,value", [("title", "   "), ("time", "25:00"), ("days_of_week", "Mon")])
    def test_invalid_values_rejected(self, field, value):
        with pytest.raises(ValidationError):
            create_request(**{field: value})

    def test_update_accepts_camel_case(self):
        request = UpdateNotificationRequest(**{"daysOfWeek": ["sun"], "active": False})
        assert request.days_of_week == [0]
        assert request.active is False
        assert request.title is None


class TestCreate:
    """Creating reminders through the service."""

    @pytest.mark.asyncio
    async def test_create_persists_broadcasts_and_schedules(
        self, service, task_queue, make_user
    ):
        make_user(tokens=["a1"])

        result = await service.create_notification(create_request(), actor_id="admin-1")

        assert result.notification.time == "09:00"
        assert result.notification.days_label == "Mon, Wed, Fri"
        assert result.notification.created_by == "admin-1"
        assert result.immediate_sent == 1
        assert result.scheduled_for == datetime(2024, 1, 3, 4, 0, tzinfo=timezone.utc)
        assert result.notification.next_occurrence_at == result.scheduled_for
        assert len(task_queue.pending_for(result.notification.id)) == 1
        assert result.warnings == []

    @pytest.mark.asyncio
    async def test_create_succeeds_when_queue_is_down(self, service, task_queue):
        task_queue.fail_create = True

        result = await service.create_notification(create_request())

        assert result.notification is not None
        assert result.scheduled_for is None
        assert result.warnings


class TestUpdate:
    """Editing reminders through the service."""

    @pytest.mark.asyncio
    async def test_update_moves_pending_task(self, service, task_queue):
        created = await service.create_notification(create_request(days_of_week=[2]))
        record_id = created.notification.id

        result = await service.update_notification(
            record_id, UpdateNotificationRequest(time="18:00"), actor_id="admin-2"
        )

        assert result.notification.time == "18:00"
        assert result.notification.updated_by == "admin-2"
        assert result.cancelled == 1
        pending = task_queue.pending_for(record_id)
        assert len(pending) == 1
        assert pending[0].fire_at == datetime(2024, 1, 2, 13, 0, tzinfo=timezone.utc)

    @pytest.mark.asyncio
    async def test_update_rejects_active_without_days(self, service, make_notification):
        record = make_notification(is_active=False, days_of_week=[])

        with pytest.raises(ValueError, match="DAYS_OF_WEEK_REQUIRED"):
            await service.update_notification(
                record.id, UpdateNotificationRequest(active=True)
            )

    @pytest.mark.asyncio
    async def test_update_missing_record(self, service):
        with pytest.raises(ValueError, match="NOTIFICATION_NOT_FOUND"):
            await service.update_notification("missing", UpdateNotificationRequest(title="x"))


class TestDeleteAndRead:
    """Deleting, reading and previewing reminders."""

    @pytest.mark.asyncio
    async def test_delete_cancels(self, service, task_queue):
        created = await service.create_notification(create_request())
        record_id = created.notification.id

        result = await service.delete_notification(record_id)

        assert result.notification is None
        assert result.cancelled == 1
        assert task_queue.pending_for(record_id) == []
        with pytest.raises(ValueError, match="NOTIFICATION_NOT_FOUND"):
            await service.get_notification(record_id)

    @pytest.mark.asyncio
    async def test_list_and_get(self, service, make_notification):
        first = make_notification(title="First")
        make_notification(title="Second", is_active=False)

        listed = await service.list_notifications()
        fetched = await service.get_notification(first.id)

        assert {n.title for n in listed} == {"First", "Second"}
        assert fetched.id == first.id
        assert fetched.next_occurrence_at is not None

    @pytest.mark.asyncio
    async def test_send_now_does_not_touch_schedule(
        self, service, push_transport, task_queue, make_user, make_notification
    ):
        make_user(tokens=["a1", "a2"])
        record = make_notification()

        summary = await service.send_now(record.id)

        assert summary.sent == 2
        assert push_transport.sent_messages[0].data["type"] == "manualReminder"
        assert task_queue.created == []

    @pytest.mark.asyncio
    async def test_preview_next_occurrence(self, service, make_notification):
        record = make_notification(days_of_week=[1, 3, 5])

        preview = await service.preview_next_occurrence(record.id)

        assert preview["next_occurrence_at"] == datetime(2024, 1, 3, 4, 0, tzinfo=timezone.utc)
        assert preview["timezone"] == "Asia/Karachi"
        assert preview["days_label"] == "Mon, Wed, Fri"

    def test_build_list_message(self):
        assert NotificationService.build_list_message(0) == "No reminders found"
        assert NotificationService.build_list_message(1) == "Retrieved 1 reminder"
        assert NotificationService.build_list_message(3) == "Retrieved 3 reminders"


class TestBlockingWorkOffTheLoop:
    """Store and push calls run in a worker thread, not on the event loop."""

    @pytest.mark.asyncio
    async def test_send_now_broadcasts_in_worker_thread(
        self, service, components, make_user, make_notification, monkeypatch
    ):
        make_user(tokens=["a1"])
        record = make_notification()
        original = components.executor.broadcast
        threads = []

        def broadcast(title, body, data=None):
            threads.append(threading.get_ident())
            return original(title, body, data)

        monkeypatch.setattr(components.executor, "broadcast", broadcast)

        summary = await service.send_now(record.id)

        assert summary.sent == 1
        assert threads and threads[0] != threading.get_ident()

    @pytest.mark.asyncio
    async def test_mutation_side_effects_in_worker_thread(
        self, service, components, monkeypatch
    ):
        original = components.bridge.handle
        threads = []

        def handle(event):
            threads.append(threading.get_ident())
            return original(event)

        monkeypatch.setattr(components.bridge, "handle", handle)

        created = await service.create_notification(create_request())
        await service.delete_notification(created.notification.id)

        assert len(threads) == 2
        assert threading.get_ident() not in threads

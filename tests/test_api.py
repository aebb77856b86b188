import pytest

from app.config.settings import settings

NOTIFICATIONS = f"{settings.API_PREFIX}/notifications"
HEALTH = f"{settings.API_PREFIX}/health"
DELIVER = f"{settings.WEBHOOK_PREFIX}/notifications/deliver"
WEBHOOK_HEADERS = {"Authorization": "Bearer test-webhook-token"}


def reminder_payload(**overrides):
    payload = {
        "title": "Drink water",
        "body": "Stay hydrated",
        "time": "09:00",
        "daysOfWeek": [1, 3, 5],
    }
    payload.update(overrides)
    return payload


class TestNotificationsApi:
    """Admin reminder endpoints."""

    def test_create_returns_201_with_schedule(self, api_client, task_queue, make_user):
        make_user(tokens=["a1"])

        response = api_client.post(
            NOTIFICATIONS, json=reminder_payload(), headers={"X-Actor-ID": "admin-1"}
        )

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["status"] == "success"
        data = body["data"]
        assert data["notification"]["daysOfWeek"] == [1, 3, 5]
        assert data["notification"]["daysLabel"] == "Mon, Wed, Fri"
        assert data["notification"]["createdBy"] == "admin-1"
        assert data["scheduledFor"] == "2024-01-03T04:00:00+00:00"
        assert data["immediateSent"] == 1
        assert len(task_queue.pending_for(data["notification"]["id"])) == 1

    def test_create_with_queue_down_returns_warning(self, api_client, task_queue):
        task_queue.fail_create = True

        response = api_client.post(NOTIFICATIONS, json=reminder_payload())

        assert response.status_code == 201
        body = response.json()
        assert body["status"] == "warning"
        assert body["warnings"]

    @pytest.mark.parametrize(
        "overrides",
        [
            {"time": "9am"},
            {"daysOfWeek": []},
            {"title": "  "},
            {"title": "x" * 101},
        ],
    )
    def test_create_rejects_invalid_input(self, api_client, overrides):
        response = api_client.post(NOTIFICATIONS, json=reminder_payload(**overrides))

        assert response.status_code == 422
        body = response.json()
        assert body["success"] is False
        assert body["meta"]["error_code"] == "VALIDATION_ERROR"

    def test_list_and_get(self, api_client, make_notification):
        record = make_notification()

        listed = api_client.get(NOTIFICATIONS)
        fetched = api_client.get(f"{NOTIFICATIONS}/{record.id}")

        assert listed.status_code == 200
        assert listed.json()["message"] == "Retrieved 1 reminder"
        assert [n["id"] for n in listed.json()["data"]] == [record.id]
        assert fetched.status_code == 200
        assert fetched.json()["data"]["nextOccurrenceAt"] == "2024-01-03T04:00:00+00:00"

    def test_get_missing_returns_404(self, api_client):
        response = api_client.get(f"{NOTIFICATIONS}/missing")

        assert response.status_code == 404
        assert response.json()["meta"]["error_code"] == "NOTIFICATION_NOT_FOUND"

    def test_update_reschedules(self, api_client, task_queue, make_notification):
        record = make_notification(days_of_week=[2])

        response = api_client.put(f"{NOTIFICATIONS}/{record.id}", json={"time": "18:00"})

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["notification"]["time"] == "18:00"
        assert data["scheduledFor"] == "2024-01-02T13:00:00+00:00"
        assert len(task_queue.pending_for(record.id)) == 1

    def test_update_activating_without_days_is_400(self, api_client, make_notification):
        record = make_notification(is_active=False, days_of_week=[])

        response = api_client.put(f"{NOTIFICATIONS}/{record.id}", json={"active": True})

        assert response.status_code == 400
        assert response.json()["meta"]["error_code"] == "DAYS_OF_WEEK_REQUIRED"

    def test_delete_cancels_pending(self, api_client, task_queue):
        created = api_client.post(NOTIFICATIONS, json=reminder_payload())
        record_id = created.json()["data"]["notification"]["id"]

        response = api_client.delete(f"{NOTIFICATIONS}/{record_id}")

        assert response.status_code == 200
        assert response.json()["data"]["cancelled"] == 1
        assert task_queue.pending_for(record_id) == []
        assert api_client.get(f"{NOTIFICATIONS}/{record_id}").status_code == 404

    def test_send_now(self, api_client, push_transport, make_user, make_notification):
        make_user(tokens=["a1", "a2"])
        record = make_notification()

        response = api_client.post(f"{NOTIFICATIONS}/{record.id}/send-now")

        assert response.status_code == 200
        assert response.json()["data"]["sent"] == 2
        assert len(push_transport.sent_messages) == 2

    def test_next_occurrence(self, api_client, make_notification):
        record = make_notification(days_of_week=[2], time_of_day="18:00")

        response = api_client.get(f"{NOTIFICATIONS}/{record.id}/next-occurrence")

        data = response.json()["data"]
        assert data["nextOccurrenceAt"] == "2024-01-02T13:00:00+00:00"
        assert data["timezone"] == "Asia/Karachi"
        assert data["daysLabel"] == "Tue"

    def test_request_id_is_echoed(self, api_client):
        response = api_client.get(NOTIFICATIONS, headers={"X-Request-ID": "req-123"})

        assert response.headers["X-Request-ID"] == "req-123"
        assert response.json()["request_id"] == "req-123"


class TestDeliveryWebhook:
    """Callback invoked by the delayed-execution queue."""

    def test_missing_token_is_401(self, api_client, make_notification):
        record = make_notification()

        response = api_client.post(DELIVER, json={"recordId": record.id})

        assert response.status_code == 401
        assert response.json()["meta"]["error_code"] == "UNAUTHORIZED"

    def test_wrong_token_is_401(self, api_client, make_notification):
        record = make_notification()

        response = api_client.post(
            DELIVER,
            json={"recordId": record.id},
            headers={"Authorization": "Bearer nope"},
        )

        assert response.status_code == 401

    def test_unconfigured_token_is_503(self, api_client, monkeypatch, make_notification):
        monkeypatch.setattr(settings, "WEBHOOK_AUTH_TOKEN", "")
        record = make_notification()

        response = api_client.post(
            DELIVER, json={"recordId": record.id}, headers=WEBHOOK_HEADERS
        )

        assert response.status_code == 503

    def test_delivers_and_reschedules(
        self, api_client, push_transport, task_queue, make_user, make_notification
    ):
        make_user(tokens=["a1"])
        record = make_notification(days_of_week=[1, 3, 5])

        response = api_client.post(
            DELIVER, json={"recordId": record.id}, headers=WEBHOOK_HEADERS
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["status"] == "success"
        assert data["sent"] == 1
        assert data["nextOccurrenceAt"] == "2024-01-03T04:00:00+00:00"
        assert len(task_queue.pending_for(record.id)) == 1

    def test_missing_record_is_acknowledged(self, api_client, task_queue):
        response = api_client.post(
            DELIVER, json={"recordId": "gone"}, headers=WEBHOOK_HEADERS
        )

        assert response.status_code == 200
        assert response.json()["data"]["status"] == "not_found"
        assert task_queue.created == []

    def test_missing_record_id_is_422(self, api_client):
        response = api_client.post(DELIVER, json={}, headers=WEBHOOK_HEADERS)

        assert response.status_code == 422


class TestHealth:
    def test_health(self, api_client):
        response = api_client.get(HEALTH)

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["status"] == "healthy"
        assert data["database"] == "ok"
        assert data["timezone"] == settings.TARGET_TIMEZONE

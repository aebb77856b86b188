from unittest.mock import Mock, patch

import pytest
from firebase_admin.exceptions import FirebaseError

from app.providers.push_transport import FirebasePushTransport
from app.services.notifications.fanout import PushMessage
from app.utils.errors import ConfigurationError, PushTransportError

MODULE = "app.providers.push_transport"


def messages(count):
    return [
        PushMessage(token=f"token-{i:04d}", title="Drink water", body="Stay hydrated", data={"type": "scheduledReminder"})
        for i in range(count)
    ]


@pytest.fixture
def transport():
    transport = FirebasePushTransport(credentials_path="service-account.json")
    transport._app = Mock()
    return transport


class TestFirebasePushTransport:
    """FCM batch sending via send_each."""

    def test_send_batch_reports_counts(self, transport):
        response = Mock(success_count=2, failure_count=1)
        response.responses = [
            Mock(success=True),
            Mock(success=True),
            Mock(success=False, exception=Exception("Requested entity was not found")),
        ]

        with patch(f"{MODULE}.messaging.send_each", return_value=response) as send_each:
            result = transport.send_batch(messages(3))

        assert result.success_count == 2
        assert result.failure_count == 1
        sent = send_each.call_args.args[0]
        assert [m.token for m in sent] == ["token-0000", "token-0001", "token-0002"]
        assert sent[0].notification.title == "Drink water"
        assert sent[0].data == {"type": "scheduledReminder"}

    def test_empty_batch_is_not_sent(self, transport):
        with patch(f"{MODULE}.messaging.send_each") as send_each:
            result = transport.send_batch([])

        send_each.assert_not_called()
        assert result.success_count == 0

    def test_oversized_batch_rejected(self, transport):
        with pytest.raises(ValueError):
            transport.send_batch(messages(501))

    def test_firebase_error_becomes_transport_error(self, transport):
        error = FirebaseError("UNAVAILABLE", "backend unavailable")

        with patch(f"{MODULE}.messaging.send_each", side_effect=error):
            with pytest.raises(PushTransportError):
                transport.send_batch(messages(1))

    def test_missing_credentials_is_configuration_error(self):
        transport = FirebasePushTransport(credentials_path="")

        with patch(f"{MODULE}.firebase_admin.get_app", side_effect=ValueError("no app")):
            with pytest.raises(ConfigurationError) as exc_info:
                transport.send_batch(messages(1))

        assert exc_info.value.error_code == "FIREBASE_NOT_CONFIGURED"

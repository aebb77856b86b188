import pytest

from app.db.models import UserRole
from app.services.notifications.fanout import (
    PushMessage,
    build_messages,
    partition,
    resolve_tokens,
    stringify_data,
)


class TestResolveTokens:
    """Device token resolution per user."""

    def test_device_tokens_take_precedence_over_legacy(self, make_user):
        user = make_user(tokens=["a", "b"], legacy_token="legacy")
        assert resolve_tokens(user) == ["a", "b"]

    def test_falls_back_to_legacy_token(self, make_user):
        user = make_user(legacy_token="legacy")
        assert resolve_tokens(user) == ["legacy"]

    def test_blank_tokens_are_ignored(self, make_user):
        user = make_user(tokens=["  "], legacy_token="  ")
        assert resolve_tokens(user) == []

    def test_no_tokens(self, make_user):
        assert resolve_tokens(make_user()) == []


class TestBuildMessages:
    """One message per eligible device token."""

    def test_filters_inactive_users_and_other_roles(self, make_user):
        users = [
            make_user(tokens=["t1"]),
            make_user(tokens=["t2"], is_active=False),
            make_user(tokens=["t3"], role=UserRole.ADMIN),
            make_user(legacy_token="t4"),
        ]
        messages = build_messages(users, "Title", "Body", role=UserRole.USER)
        assert [m.token for m in messages] == ["t1", "t4"]

    def test_no_role_filter_includes_admins(self, make_user):
        users = [make_user(tokens=["t1"]), make_user(tokens=["t2"], role=UserRole.ADMIN)]
        assert len(build_messages(users, "Title", "Body")) == 2

    def test_data_values_are_strings(self, make_user):
        messages = build_messages(
            [make_user(tokens=["t1"])],
            "Title",
            "Body",
            {"type": "scheduledReminder", "count": 3, "skip": None},
        )
        assert messages[0].data == {"type": "scheduledReminder", "count": "3"}
        assert messages[0].title == "Title"
        assert messages[0].body == "Body"

    def test_stringify_data_handles_none(self):
        assert stringify_data(None) == {}


class TestPartition:
    """Batching under the transport limit."""

    def _messages(self, count):
        return [PushMessage(token=f"t{i}", title="T", body="B") for i in range(count)]

    def test_1200_messages_split_500_500_200(self):
        batches = partition(self._messages(1200), 500)
        assert [len(b) for b in batches] == [500, 500, 200]
        assert [m.token for b in batches for m in b] == [f"t{i}" for i in range(1200)]

    def test_exact_multiple(self):
        assert [len(b) for b in partition(self._messages(1000), 500)] == [500, 500]

    def test_empty_input_gives_no_batches(self):
        assert partition([], 500) == []

    def test_batch_size_must_be_positive(self):
        with pytest.raises(ValueError):
            partition(self._messages(3), 0)

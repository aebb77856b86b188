from typing import Dict, Iterable, List, Optional, Sequence

from pydantic import BaseModel, Field

from app.db.models import User, UserRole


class PushMessage(BaseModel):
    token: str
    title: str
    body: str
    data: Dict[str, str] = Field(default_factory=dict)


class BatchResult(BaseModel):
    success_count: int = 0
    failure_count: int = 0


def resolve_tokens(user: User) -> List[str]:
    """
    Device tokens for a user: the multi-device list when it has entries,
    otherwise the legacy single token, otherwise nothing.
    """
    tokens: List[str] = []
    for device in user.device_tokens or []:
        token = (device.token or "").strip()
        if token and token not in tokens:
            tokens.append(token)
    if tokens:
        return tokens

    legacy = (user.fcm_token or "").strip()
    return [legacy] if legacy else []


def is_eligible(user: User, role: Optional[UserRole] = None) -> bool:
    if not user.is_active:
        return False
    return role is None or user.role == role


def stringify_data(data: Optional[Dict[str, object]]) -> Dict[str, str]:
    """FCM data payloads only carry string values."""
    result: Dict[str, str] = {}
    for key, value in (data or {}).items():
        if value is None:
            continue
        result[str(key)] = value if isinstance(value, str) else str(value)
    return result


def build_messages(
    users: Iterable[User],
    title: str,
    body: str,
    extra_data: Optional[Dict[str, object]] = None,
    role: Optional[UserRole] = None,
) -> List[PushMessage]:
    """One message per device token, in user order then token order."""
    data = stringify_data(extra_data)
    messages: List[PushMessage] = []
    for user in users:
        if not is_eligible(user, role):
            continue
        for token in resolve_tokens(user):
            messages.append(
                PushMessage(token=token, title=title, body=body, data=dict(data))
            )
    return messages


def partition(
    messages: Sequence[PushMessage], batch_size: int
) -> List[List[PushMessage]]:
    if batch_size < 1:
        raise ValueError("batch_size must be at least 1")
    return [
        list(messages[start : start + batch_size])
        for start in range(0, len(messages), batch_size)
    ]

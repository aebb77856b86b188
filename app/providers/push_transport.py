from abc import ABC, abstractmethod
from functools import lru_cache
from typing import List, Optional, Sequence

import firebase_admin
from firebase_admin import credentials, messaging
from firebase_admin.exceptions import FirebaseError

from app.config.settings import settings
from app.services.notifications.fanout import BatchResult, PushMessage
from app.utils.errors import ConfigurationError, PushTransportError
from app.utils.logging import get_logger

logger = get_logger()

FCM_MAX_BATCH_SIZE = 500
FIREBASE_APP_NAME = "reminders"


class PushTransport(ABC):
    """Bulk push sender. Accepts at most ``max_batch_size`` messages per call."""

    max_batch_size: int = FCM_MAX_BATCH_SIZE

    @abstractmethod
    def send_batch(self, messages: Sequence[PushMessage]) -> BatchResult:
        pass


class FirebasePushTransport(PushTransport):
    """Firebase Cloud Messaging transport built on ``messaging.send_each``."""

    def __init__(self, credentials_path: str, project_id: Optional[str] = None):
        self.credentials_path = credentials_path
        self.project_id = project_id
        self._app: Optional[firebase_admin.App] = None

    def _get_app(self) -> firebase_admin.App:
        if self._app is not None:
            return self._app

        try:
            self._app = firebase_admin.get_app(FIREBASE_APP_NAME)
            return self._app
        except ValueError:
            pass

        if not self.credentials_path:
            raise ConfigurationError(
                "Firebase credentials are not configured. Set FIREBASE_CREDENTIALS_PATH "
                "to a service account JSON file to enable push delivery.",
                error_code="FIREBASE_NOT_CONFIGURED",
            )

        options = {"projectId": self.project_id} if self.project_id else None
        self._app = firebase_admin.initialize_app(
            credentials.Certificate(self.credentials_path),
            options,
            name=FIREBASE_APP_NAME,
        )
        return self._app

    @staticmethod
    def _to_fcm_message(message: PushMessage) -> messaging.Message:
        return messaging.Message(
            token=message.token,
            notification=messaging.Notification(title=message.title, body=message.body),
            data=message.data or None,
            android=messaging.AndroidConfig(priority="high"),
            apns=messaging.APNSConfig(
                headers={"apns-priority": "10"},
                payload=messaging.APNSPayload(aps=messaging.Aps(sound="default")),
            ),
        )

    def send_batch(self, messages: Sequence[PushMessage]) -> BatchResult:
        if not messages:
            return BatchResult()
        if len(messages) > self.max_batch_size:
            raise ValueError(
                f"FCM accepts at most {self.max_batch_size} messages per call, got {len(messages)}"
            )

        app = self._get_app()
        fcm_messages: List[messaging.Message] = [
            self._to_fcm_message(message) for message in messages
        ]

        try:
            response = messaging.send_each(fcm_messages, app=app)
        except FirebaseError as e:
            raise PushTransportError(f"FCM batch send failed: {e}") from e

        for message, send_response in zip(messages, response.responses):
            if not send_response.success:
                logger.warning(
                    "FCM rejected device token",
                    token_suffix=message.token[-8:],
                    error=str(send_response.exception),
                )

        return BatchResult(
            success_count=response.success_count,
            failure_count=response.failure_count,
        )


@lru_cache()
def get_push_transport() -> PushTransport:
    return FirebasePushTransport(
        credentials_path=settings.FIREBASE_CREDENTIALS_PATH,
        project_id=settings.FIREBASE_PROJECT_ID or None,
    )

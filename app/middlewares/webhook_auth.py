import secrets
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.config.settings import settings
from app.utils.errors import AuthenticationError, ConfigurationError
from app.utils.logging import get_logger

logger = get_logger()

bearer_scheme = HTTPBearer(auto_error=False)


def require_webhook_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> None:
    """
    Dependency guarding the delivery webhook.

    The delayed-execution queue presents ``Authorization: Bearer <token>``;
    the token must equal ``WEBHOOK_AUTH_TOKEN``.
    """
    expected = settings.WEBHOOK_AUTH_TOKEN
    if not expected:
        raise ConfigurationError(
            "WEBHOOK_AUTH_TOKEN is not set; the delivery webhook refuses all calls "
            "until it is configured.",
            error_code="WEBHOOK_NOT_CONFIGURED",
        )

    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Missing bearer token", "WEBHOOK_AUTH_REQUIRED")

    if not secrets.compare_digest(credentials.credentials, expected):
        logger.warning("Rejected delivery webhook call with an invalid token")
        raise AuthenticationError("Invalid bearer token", "WEBHOOK_AUTH_INVALID")

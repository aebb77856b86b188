from .request_id_middleware import RequestIDMiddleware
from .webhook_auth import require_webhook_token

__all__ = [
    "RequestIDMiddleware",
    "require_webhook_token",
]

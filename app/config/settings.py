from typing import List, Literal, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Application
    ENVIRONMENT: str = "development"
    NAME: str = "Habit Reminder Scheduler"
    VERSION: str = "1.0.0"
    API_PREFIX: str = "/api/v1"
    WEBHOOK_PREFIX: str = "/webhooks"
    """Pydantic v2 doesn't support parsing List[str] from a plain comma-separated string by default anymore."""
    ALLOWED_HOSTS: Union[str, List[str]] = "http://localhost:4200"
    LOG_LEVEL: str = "INFO"

    # Database
    DATABASE_URL: str = "sqlite:///./habit_reminders.db"

    # Redis & Celery
    REDIS_PASSWORD: str = ""
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0

    # Reminder scheduling
    TARGET_TIMEZONE: str = "Asia/Karachi"
    SCHEDULER_MODE: Literal["queue", "polling"] = "queue"
    DEDUP_TOLERANCE_SECONDS: int = 45
    NOTIFY_ON_CREATE: bool = True
    RECIPIENT_ROLE: str = "user"

    # Delivery callback invoked by the delayed-execution queue
    DELIVERY_CALLBACK_URL: str = ""
    WEBHOOK_AUTH_TOKEN: str = ""

    # Firebase Cloud Messaging
    FIREBASE_CREDENTIALS_PATH: str = ""
    FIREBASE_PROJECT_ID: str = ""
    PUSH_BATCH_SIZE: int = 500

    @field_validator("ALLOWED_HOSTS", mode="before")
    def assemble_cors_origins(cls, v: Union[str, List[str]]) -> Union[List[str], str]:
        if not v:
            return []
        if isinstance(v, str) and not v.startswith("["):
            return [i.strip() for i in v.split(",")]
        return v

    @field_validator("TARGET_TIMEZONE")
    def validate_target_timezone(cls, v: str) -> str:
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"Unknown IANA timezone: {v}")
        return v

    @field_validator("PUSH_BATCH_SIZE")
    def validate_push_batch_size(cls, v: int) -> int:
        # FCM rejects more than 500 messages per send_each call
        if v < 1 or v > 500:
            raise ValueError("PUSH_BATCH_SIZE must be between 1 and 500")
        return v

    @property
    def target_zone(self) -> ZoneInfo:
        return ZoneInfo(self.TARGET_TIMEZONE)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )


settings = Settings()

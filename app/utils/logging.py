import json
import logging
import os
import sys
from datetime import date
from pathlib import Path

from loguru import logger

from app.config.settings import settings
from app.utils.context import get_request_id

DEFAULT_REQUEST_ID = "app"

DEFAULT_LOGGING_CONFIG = {
    "logger": {
        "log_dir": "logs",
        "filename": "reminders.log",
        "level": "info",
        "rotation": "20 MB",
        "retention": "14 days",
        "console_format": "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | <cyan>{extra[request_id]}</cyan> | <level>{message}</level> | {extra}",
        "file_format": "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {extra[request_id]} | {name}:{function}:{line} | {message} | {extra}",
        "use_json_logs": False,
    }
}

# Standard-library loggers routed into loguru
INTERCEPTED_LOGGERS = (
    "uvicorn",
    "uvicorn.error",
    "uvicorn.access",
    "fastapi",
    "celery",
    "celery.task",
    "celery.worker",
    "firebase_admin",
    "httpx",
)


class InterceptHandler(logging.Handler):
    """Forward standard logging records to loguru, tagged with the current request ID."""

    def emit(self, record):
        try:
            level = logger.level(record.levelname).name
        except (AttributeError, ValueError):
            level = record.levelno

        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.bind(request_id=get_request_id() or DEFAULT_REQUEST_ID).opt(
            depth=depth, exception=record.exc_info
        ).log(level, record.getMessage())


def _inject_request_id(record):
    # Module-level loggers are bound once at import; pick up the live request ID
    if record["extra"].get("request_id", DEFAULT_REQUEST_ID) == DEFAULT_REQUEST_ID:
        record["extra"]["request_id"] = get_request_id() or DEFAULT_REQUEST_ID


class CustomizeLogger:
    @classmethod
    def make_logger(cls, config_path: Path, environment: str = "logger"):
        config = cls.load_logging_config(config_path)
        logging_config = config.get(environment, config.get("logger"))
        filename = f"{date.today().strftime('%Y-%m-%d')}-{logging_config.get('filename')}"

        # An explicitly set LOG_LEVEL (env or .env) beats the file
        if "LOG_LEVEL" in settings.model_fields_set:
            level = settings.LOG_LEVEL
        else:
            level = logging_config.get("level") or settings.LOG_LEVEL

        return cls.customize_logging(
            log_file=Path(logging_config.get("log_dir")) / filename,
            level=level.upper(),
            rotation=logging_config.get("rotation"),
            retention=logging_config.get("retention"),
            console_format=logging_config.get("console_format"),
            file_format=logging_config.get("file_format"),
            use_json_logs=logging_config.get("use_json_logs", False),
        )

    @classmethod
    def customize_logging(
        cls,
        log_file: Path,
        level: str,
        rotation: str,
        retention: str,
        console_format: str,
        file_format: str,
        use_json_logs: bool = False,
    ):
        logger.remove()
        logger.configure(
            extra={"request_id": DEFAULT_REQUEST_ID}, patcher=_inject_request_id
        )

        # Console logger with colors
        logger.add(
            sys.stdout,
            enqueue=True,
            backtrace=True,
            level=level,
            format=console_format,
            colorize=True,
        )

        # File logger: JSON lines in production, plain text otherwise
        file_options = {"serialize": True} if use_json_logs else {"format": file_format}
        logger.add(
            str(log_file),
            rotation=rotation,
            retention=retention,
            enqueue=True,
            backtrace=True,
            level=level,
            colorize=False,
            **file_options,
        )

        cls._setup_intercept_handlers()
        return logger

    @staticmethod
    def _setup_intercept_handlers():
        logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
        for log_name in INTERCEPTED_LOGGERS:
            logging.getLogger(log_name).handlers = [InterceptHandler()]

    @staticmethod
    def load_logging_config(config_path: Path):
        if not config_path.exists():
            return DEFAULT_LOGGING_CONFIG
        with open(config_path) as config_file:
            return json.load(config_file)


# Initialize logger
config_path = Path(os.getenv("LOGGING_CONFIG_PATH", "logging_config.json"))
environment = "production" if settings.ENVIRONMENT == "production" else "logger"
custom_logger = CustomizeLogger.make_logger(config_path, environment)


def get_logger():
    """Get the custom logger instance with request ID binding."""
    return custom_logger.bind(request_id=get_request_id() or DEFAULT_REQUEST_ID)

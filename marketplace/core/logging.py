"""
JSON logging for the API process and Celery workers.
Structured context goes through `extra={...}`; only whitelisted keys are emitted.
"""
import json
import logging
from logging.handlers import RotatingFileHandler
from datetime import datetime, timezone

from marketplace.core.config import settings


# Context keys copied from the record into the JSON line
EXTRA_FIELDS = (
    # request
    "request_id", "path", "method", "status_code", "latency_ms",
    # ledger
    "order_id", "buyer_id", "line_id", "idempotency_key", "sequence_number",
    "event_status", "from_status", "to_status", "amount", "count",
    # access / delivery
    "user_id", "asset_id", "role", "access_level",
    # payouts
    "creator_id", "payout_id",
    # dependencies
    "breaker_name", "old_state", "new_state", "error",
)

# Chatty third-party loggers kept at WARNING
QUIET_LOGGERS = ("uvicorn.access", "httpx", "httpcore", "PIL")


class JsonFormatter(logging.Formatter):
    """One JSON object per line; values that are not JSON-native are str()'d."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for field in EXTRA_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                payload[field] = value
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def build_handlers() -> list[logging.Handler]:
    formatter = JsonFormatter()
    stream = logging.StreamHandler()
    stream.setFormatter(formatter)
    handlers: list[logging.Handler] = [stream]
    if settings.log_file:
        file_handler = RotatingFileHandler(
            settings.log_file,
            maxBytes=settings.log_max_bytes,
            backupCount=settings.log_backup_count,
        )
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)
    return handlers


def configure_logging(logger: logging.Logger | None = None) -> None:
    """Install JSON handlers on the given logger (root by default)."""
    target = logger or logging.getLogger()
    target.setLevel(settings.log_level.upper())
    target.handlers = build_handlers()
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

"""
logging_config.py - Structured logging for the submission pipeline.

Provides:
- JSON log formatting
- Root logger configuration for CLI and server entry points
- SyncLogger with convenience methods for sync events
"""

import json
import logging
import time


# Attributes every LogRecord has; anything else came in through `extra=`
_RESERVED_ATTRS = frozenset(vars(logging.makeLogRecord({})).keys()) | {"message", "asctime"}


class JSONFormatter(logging.Formatter):
    """JSON log formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": time.strftime("%Y-%m-%dT%H:%M:%S", time.gmtime(record.created)),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS and not key.startswith("_"):
                log_data[key] = value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def configure_logging(
    level: str = "INFO",
    json_format: bool = True,
    log_file: str | None = None
) -> None:
    """
    Configure logging for production.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        json_format: Use JSON formatting
        log_file: Optional log file path
    """
    handlers: list[logging.Handler] = []

    console = logging.StreamHandler()
    if json_format:
        console.setFormatter(JSONFormatter())
    else:
        console.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        ))
    handlers.append(console)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(JSONFormatter())
        handlers.append(file_handler)

    logging.basicConfig(
        level=getattr(logging, level.upper()),
        handlers=handlers,
        force=True,
    )


class SyncLogger:
    """
    Structured logger for sync operations.

    Provides convenience methods for common sync events.
    """

    def __init__(self, name: str = "po_sync.sync"):
        self._logger = logging.getLogger(name)

    def pass_started(self, pending: int, trigger: str) -> None:
        """Log sync pass start."""
        self._logger.info(
            f"Sync pass started: pending={pending}",
            extra={"event": "pass_started", "pending": pending, "trigger": trigger},
        )

    def pass_completed(
        self,
        attempted: int,
        sent: int,
        failed: int,
        duration_ms: float
    ) -> None:
        """Log sync pass completion."""
        self._logger.info(
            f"Sync pass completed: attempted={attempted}, sent={sent}, failed={failed}",
            extra={
                "event": "pass_completed",
                "attempted": attempted,
                "sent": sent,
                "failed": failed,
                "duration_ms": round(duration_ms, 2),
            },
        )

    def delivery_failed(
        self,
        submission_id: int | None,
        error: str | None,
        status_code: int | None = None
    ) -> None:
        """Log a failed delivery; 4xx rejections are logged louder."""
        level = logging.ERROR if status_code is not None and 400 <= status_code < 500 else logging.WARNING
        self._logger.log(
            level,
            f"Push failed for id {submission_id}: {error}",
            extra={
                "event": "delivery_failed",
                "submission_id": submission_id,
                "status_code": status_code,
            },
        )

    def request_queued(self, action: str, attempts: int) -> None:
        """Log a request parked in the retry queue."""
        self._logger.warning(
            f"All retry attempts exhausted, queued {action}",
            extra={"event": "request_queued", "action": action, "attempts": attempts},
        )

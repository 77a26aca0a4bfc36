"""Structured logging configuration.

JSON-formatted logs carry the current job id on every record so that
interleaved output from concurrent jobs and chunks can be separated by
a log aggregator.
"""

import contextvars
import json
import logging
from datetime import datetime, timezone

# Context var to carry job_id across the tasks of one generation job
_job_id_ctx: contextvars.ContextVar[str] = contextvars.ContextVar("job_id", default="-")

_EXTRA_FIELDS = (
    "job_id",
    "chunk_index",
    "attempt",
    "max_attempts",
    "delay_seconds",
    "exception_type",
    "error_code",
    "service",
    "duration_ms",
    "http_status",
    "page_count",
    "chunk_count",
    "key",
    "size_bytes",
)


def get_job_id() -> str:
    return _job_id_ctx.get()


def set_job_id(job_id: str) -> contextvars.Token:
    return _job_id_ctx.set(job_id)


def reset_job_id(token: contextvars.Token) -> None:
    _job_id_ctx.reset(token)


class JobIdFilter(logging.Filter):
    """Inject job_id from contextvars into log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "job_id"):
            record.job_id = get_job_id()
        return True


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging.

    Outputs logs as JSON with standard fields plus any known extra context
    provided via the 'extra' parameter in logger calls.

    Example:
        >>> logger.info("Chunk rendered", extra={"chunk_index": 3})
        # Output: {"timestamp": "2026-10-18T09:12:00Z", "level": "INFO",
        #          "message": "Chunk rendered", "chunk_index": 3, ...}
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc)
            .replace(tzinfo=None)
            .isoformat()
            + "Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        for key in _EXTRA_FIELDS:
            if hasattr(record, key):
                log_data[key] = getattr(record, key)

        if record.exc_info:
            log_data["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": self.formatException(record.exc_info),
            }

        return json.dumps(log_data, ensure_ascii=False, default=str)


def configure_structured_logging(
    level: str = "INFO",
    json_format: bool = True,
) -> None:
    """Configure root logging for the process. Safe to call repeatedly.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: Use JSON formatter (True) or plain text (False)
    """
    root_logger = logging.getLogger()
    root_logger.handlers.clear()

    handler = logging.StreamHandler()
    handler.addFilter(JobIdFilter())

    if json_format:
        formatter = StructuredFormatter()
    else:
        formatter = logging.Formatter(
            "%(asctime)s | %(levelname)s | %(name)s | job_id=%(job_id)s | %(message)s"
        )

    handler.setFormatter(formatter)
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, level.upper()))

    # Suppress noisy libraries
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)

"""
Logging setup for the catalog explorer.

Each Lambda invocation gets a correlation id, and each CSV upload an
import id. Both live in context variables and are stamped onto every log
record by ImportContextFilter, so plain-text and JSON output carry them.
Inside Lambda records are emitted as JSON lines for CloudWatch Logs Insights.
"""

import functools
import json
import logging
import os
import sys
import time
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Optional

correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="")
import_id_var: ContextVar[str] = ContextVar("import_id", default="")

# Keys callers may pass through `extra` that end up in JSON output.
# "filename" is a LogRecord attribute, so uploads use "source_file".
RECORD_FIELDS = (
    "row_number",
    "source_file",
    "storage_key",
    "s3_bucket",
    "s3_key",
    "duration_ms",
    "metrics",
)

TEXT_FORMAT = "[%(levelname)s] %(asctime)s %(name)s [%(correlation_id)s] %(message)s"


def set_correlation_id(correlation_id: Optional[str] = None) -> str:
    """Set (or generate) the correlation id for the current invocation."""
    cid = correlation_id or str(uuid.uuid4())
    correlation_id_var.set(cid)
    return cid


def get_correlation_id() -> str:
    return correlation_id_var.get()


def set_import_id(import_id: str) -> None:
    import_id_var.set(import_id)


def get_import_id() -> str:
    return import_id_var.get()


class ImportContextFilter(logging.Filter):
    """Copy the current correlation and import ids onto each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = get_correlation_id() or "-"
        record.import_id = get_import_id() or "-"
        return True


class StructuredJsonFormatter(logging.Formatter):
    """One JSON object per record."""

    def __init__(self, service_name: str = "catalog-explorer"):
        super().__init__()
        self.service_name = service_name

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc)
            .isoformat(timespec="milliseconds")
            .replace("+00:00", "Z"),
            "level": record.levelname,
            "service": self.service_name,
            "logger": record.name,
            "function": record.funcName,
            "message": record.getMessage(),
            "correlation_id": getattr(record, "correlation_id", None) or get_correlation_id(),
            "import_id": getattr(record, "import_id", None) or get_import_id(),
        }
        entry.update(
            (name, getattr(record, name)) for name in RECORD_FIELDS if hasattr(record, name)
        )

        error = getattr(record, "error", None)
        if isinstance(error, dict):
            entry["error"] = error

        if record.exc_info and record.exc_info[0]:
            entry["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
            }

        return json.dumps(entry, default=str)


def configure_logging(
    level: str = "INFO",
    service_name: str = "catalog-explorer",
    json_output: Optional[bool] = None,
) -> logging.Logger:
    """
    Install a single stdout handler on the root logger.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR)
        service_name: Service name written into JSON records
        json_output: Force JSON (True) or text (False); by default JSON is
            used when running inside Lambda

    Returns:
        Logger named after the service
    """
    if json_output is None:
        json_output = bool(os.environ.get("AWS_LAMBDA_FUNCTION_NAME"))
    log_level = getattr(logging, level.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(ImportContextFilter())
    if json_output:
        handler.setFormatter(StructuredJsonFormatter(service_name))
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT))

    root_logger = logging.getLogger()
    for existing in root_logger.handlers[:]:
        root_logger.removeHandler(existing)
    root_logger.addHandler(handler)
    root_logger.setLevel(log_level)

    for noisy in ("boto3", "botocore", "urllib3"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    return logging.getLogger(service_name)


def log_execution_time(logger: logging.Logger):
    """
    Log how long the wrapped call took, at INFO on success and ERROR on failure.

    Example:
        @log_execution_time(logger)
        def ingest(self, content):
            ...
    """

    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            start = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                elapsed = round((time.perf_counter() - start) * 1000, 2)
                logger.error(
                    f"{func.__qualname__} failed after {elapsed}ms: {e}",
                    extra={"duration_ms": elapsed},
                    exc_info=True,
                )
                raise
            elapsed = round((time.perf_counter() - start) * 1000, 2)
            logger.info(f"{func.__qualname__} completed in {elapsed}ms", extra={"duration_ms": elapsed})
            return result

        return wrapper

    return decorator

"""
Structured logging configuration using python-json-logger.
Provides consistent, machine-readable logs for production environments.
"""

import logging
import sys
from typing import Any

from pythonjsonlogger import jsonlogger

from app.core.config import settings


class CatalogJsonFormatter(jsonlogger.JsonFormatter):
    """
    JSON formatter for the catalog service.

    Every record carries the service name and version. A record logged with
    ``extra={"catalog_error": exc}`` is flattened into ``error_code``,
    ``status_code``, ``retryable`` and ``context`` so failed requests can be
    filtered by code.
    """

    def add_fields(
        self,
        log_record: dict[str, Any],
        record: logging.LogRecord,
        message_dict: dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["service"] = settings.PROJECT_NAME
        log_record["version"] = settings.VERSION
        log_record["level"] = record.levelname

        error = log_record.pop("catalog_error", None)
        if error is not None:
            log_record["error_code"] = error.error_code
            log_record["status_code"] = error.status_code
            log_record["retryable"] = error.retryable
            # Enum states and similar values are logged by their plain value
            log_record["context"] = {
                key: getattr(value, "value", value) for key, value in error.context.items()
            }


_configured = False


def setup_logging() -> None:
    """
    Configure application-wide logging.
    Uses JSON format in production, simpler format in development.
    Calling it more than once is a no-op.
    """
    global _configured
    if _configured:
        return

    log_level = logging.DEBUG if settings.DEBUG else logging.INFO

    handler = logging.StreamHandler(sys.stdout)

    if settings.DEBUG:
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    else:
        formatter = CatalogJsonFormatter(
            "%(asctime)s %(level)s %(name)s %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.addHandler(handler)

    # Reduce noise from third-party libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("passlib").setLevel(logging.ERROR)

    _configured = True


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for a specific module.

    Args:
        name: Name of the module (typically __name__)

    Returns:
        Configured logger instance
    """
    return logging.getLogger(name)

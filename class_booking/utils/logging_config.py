"""
Logging configuration for the class booking core.
"""

import json
import logging
import logging.config
import re
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterator, Optional

from ..config import get_settings

# Tenant of the use case currently executing; stamped on every record
tenant_id_var: ContextVar[Optional[str]] = ContextVar("tenant_id", default=None)


def setup_logging(
    log_level: Optional[str] = None,
    log_file: Optional[str] = None,
    enable_json_logging: Optional[bool] = None,
) -> None:
    """
    Set up logging configuration.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL);
            defaults to ``Settings.log_level``
        log_file: Optional log file path
        enable_json_logging: Enable JSON formatted logs; defaults to
            ``Settings.enable_json_logging``
    """
    settings = get_settings()
    log_level = (log_level or settings.log_level).upper()
    if enable_json_logging is None:
        enable_json_logging = settings.enable_json_logging

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)

    formatter = "json" if enable_json_logging else "detailed"
    filters = ["tenant"] if settings.log_sensitive_data else ["tenant", "sensitive_data"]

    config: Dict[str, Any] = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {
                "format": "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S"
            },
            "detailed": {
                "format": (
                    "%(asctime)s [%(levelname)s] %(name)s:%(lineno)d "
                    "[tenant=%(tenant_id)s] %(message)s"
                ),
                "datefmt": "%Y-%m-%d %H:%M:%S"
            },
            "json": {
                "()": "class_booking.utils.logging_config.JSONFormatter",
            }
        },
        "filters": {
            "tenant": {
                "()": "class_booking.utils.logging_config.TenantContextFilter"
            },
            "sensitive_data": {
                "()": "class_booking.utils.logging_config.SensitiveDataFilter"
            }
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": log_level,
                "formatter": formatter,
                "stream": sys.stdout,
                "filters": filters
            }
        },
        "loggers": {
            "class_booking": {
                "level": log_level,
                "handlers": ["console"],
                "propagate": False
            },
            "sqlalchemy.engine": {
                "level": "WARNING",
                "handlers": ["console"],
                "propagate": False
            },
            "sqlalchemy.pool": {
                "level": "WARNING",
                "handlers": ["console"],
                "propagate": False
            },
            "redis": {
                "level": "WARNING",
                "handlers": ["console"],
                "propagate": False
            },
            "celery": {
                "level": "INFO",
                "handlers": ["console"],
                "propagate": False
            },
        },
        "root": {
            "level": log_level,
            "handlers": ["console"]
        }
    }

    if log_file:
        config["handlers"]["file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "level": log_level,
            "formatter": formatter,
            "filename": log_file,
            "maxBytes": 10 * 1024 * 1024,  # 10MB
            "backupCount": 5,
            "filters": filters
        }
        for logger_config in config["loggers"].values():
            logger_config["handlers"].append("file")
        config["root"]["handlers"].append("file")

    logging.config.dictConfig(config)


@contextmanager
def tenant_log_context(tenant_id: Any) -> Iterator[None]:
    """Tag every record emitted inside the block with ``tenant_id``."""
    token = tenant_id_var.set(str(tenant_id) if tenant_id is not None else None)
    try:
        yield
    finally:
        tenant_id_var.reset(token)


class TenantContextFilter(logging.Filter):
    """Filter to add the current tenant id to log records."""

    def filter(self, record):
        if not getattr(record, "tenant_id", None):
            record.tenant_id = tenant_id_var.get() or "-"
        return True


class SensitiveDataFilter(logging.Filter):
    """Filter to mask member contact data in log records."""

    SENSITIVE_KEYS = {
        'password', 'token', 'secret', 'authorization', 'email', 'phone', 'smtp_password'
    }

    EMAIL_PATTERN = re.compile(r'\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b')

    def filter(self, record):
        if isinstance(record.msg, str):
            record.msg = self._sanitize_string(record.msg)
        if record.args:
            if isinstance(record.args, dict):
                record.args = self._sanitize_data(record.args)
            else:
                record.args = tuple(self._sanitize_data(arg) for arg in record.args)
        return True

    def _sanitize_string(self, text: str) -> str:
        return self.EMAIL_PATTERN.sub('***EMAIL***', text)

    def _sanitize_data(self, data):
        """Recursively sanitize sensitive data."""
        if isinstance(data, dict):
            return {
                key: '***MASKED***' if any(s in str(key).lower() for s in self.SENSITIVE_KEYS)
                else self._sanitize_data(value)
                for key, value in data.items()
            }
        elif isinstance(data, str):
            return self._sanitize_string(data)
        elif isinstance(data, (list, tuple)):
            return type(data)(self._sanitize_data(item) for item in data)
        return data


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    RESERVED = {
        'name', 'msg', 'args', 'levelname', 'levelno', 'pathname',
        'filename', 'module', 'lineno', 'funcName', 'created',
        'msecs', 'relativeCreated', 'thread', 'threadName', 'taskName',
        'processName', 'process', 'exc_info', 'exc_text', 'stack_info',
        'tenant_id', 'message', 'asctime'
    }

    def format(self, record):
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "tenant_id": getattr(record, "tenant_id", None),
        }

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        extra_fields = {
            key: value for key, value in record.__dict__.items()
            if key not in self.RESERVED
        }
        if extra_fields:
            log_entry["extra"] = extra_fields

        return json.dumps(log_entry, default=str, ensure_ascii=False)


def get_logger(name: str) -> logging.Logger:
    """Get a logger with the specified name."""
    return logging.getLogger(name)


def log_business_event(event_type: str, details: Dict[str, Any], user_id: Optional[str] = None):
    """Log booking lifecycle events for analytics."""
    logger = get_logger("class_booking.business")
    logger.info(
        f"Business event: {event_type}",
        extra={
            "event_type": event_type,
            "business_event": True,
            "user_id": user_id,
            "details": details,
        }
    )


def log_security_event(event_type: str, details: Dict[str, Any], severity: str = "WARNING"):
    """Log authorization decisions worth auditing."""
    logger = get_logger("class_booking.security")

    log_method = getattr(logger, severity.lower(), logger.warning)
    log_method(
        f"Security event: {event_type}",
        extra={
            "event_type": event_type,
            "security_event": True,
            "severity": severity,
            "details": details,
        }
    )

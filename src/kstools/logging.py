"""Structured logging with audit trail support."""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from kstools.config import get_settings


class AuditAction(str, Enum):
    """Audit log action types."""

    # Keystore operations
    KEYSTORE_CONVERT = "keystore.convert"
    KEYSTORE_INSPECT = "keystore.inspect"

    # TLS operations
    TLS_CONNECT = "tls.connect"
    TLS_SERVE = "tls.serve"


class JSONFormatter(logging.Formatter):
    """Format log records as JSON."""

    def format(self, record: logging.LogRecord) -> str:
        """Format the log record as JSON."""
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if hasattr(record, "extra"):
            log_data.update(record.extra)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if record.levelno <= logging.DEBUG:
            log_data["location"] = {
                "file": record.filename,
                "line": record.lineno,
                "function": record.funcName,
            }

        return json.dumps(log_data, default=str)


class TextFormatter(logging.Formatter):
    """Format log records as human-readable text."""

    def format(self, record: logging.LogRecord) -> str:
        """Format the log record as text."""
        timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")
        level = record.levelname.ljust(8)
        base = f"{timestamp} {level} [{record.name}] {record.getMessage()}"

        if hasattr(record, "extra") and record.extra:
            extras = " ".join(f"{k}={v}" for k, v in record.extra.items())
            base = f"{base} | {extras}"

        if record.exc_info:
            base = f"{base}\n{self.formatException(record.exc_info)}"

        return base


class StructuredLogger(logging.LoggerAdapter):
    """Logger adapter that adds structured context."""

    def process(self, msg: str, kwargs: dict) -> tuple[str, dict]:
        """Merge adapter context into the record's ``extra`` payload."""
        fields = dict(self.extra)
        fields.update(kwargs.pop("fields", {}) or {})
        kwargs["extra"] = {"extra": fields}
        return msg, kwargs

    def with_context(self, **context) -> "StructuredLogger":
        """Create a new logger with additional context."""
        return StructuredLogger(self.logger, {**self.extra, **context})


class AuditLogger:
    """
    Audit logger for security-relevant operations.

    Successful actions are logged at INFO, failures at WARNING.
    """

    def __init__(self, logger: logging.Logger | None = None):
        self.logger = logger or logging.getLogger("kstools.audit")

    def log(
        self,
        action: AuditAction,
        resource: str | None = None,
        details: dict[str, Any] | None = None,
        success: bool = True,
        error: str | None = None,
    ) -> None:
        """
        Log an audit event.

        Args:
            action: The action being performed
            resource: Path or endpoint the action targeted
            details: Additional details about the action
            success: Whether the action succeeded
            error: Error message if action failed
        """
        audit_data: dict[str, Any] = {
            "audit": True,
            "action": action.value,
            "success": success,
        }
        if resource:
            audit_data["resource"] = resource
        if details:
            audit_data["details"] = details
        if error:
            audit_data["error"] = error

        level = logging.INFO if success else logging.WARNING
        self.logger.log(
            level,
            f"{action.value}: {resource or '-'} {'succeeded' if success else 'failed'}",
            extra={"extra": audit_data},
        )

    def keystore_converted(
        self,
        source: str,
        destination: str,
        dest_format: str,
        copied: list[str],
        skipped: list[str],
    ) -> None:
        """Log a completed keystore conversion."""
        self.log(
            action=AuditAction.KEYSTORE_CONVERT,
            resource=source,
            details={
                "destination": destination,
                "dest_format": dest_format,
                "copied": copied,
                "skipped": skipped,
            },
        )

    def conversion_failed(self, source: str, destination: str, error: str) -> None:
        self.log(
            action=AuditAction.KEYSTORE_CONVERT,
            resource=source,
            details={"destination": destination},
            success=False,
            error=error,
        )

    def tls_connected(self, endpoint: str, peer_subject: str | None, cipher: str | None) -> None:
        """Log an established mutual-TLS connection."""
        self.log(
            action=AuditAction.TLS_CONNECT,
            resource=endpoint,
            details={"peer": peer_subject, "cipher": cipher},
        )

    def tls_connect_failed(self, endpoint: str, kind: str, error: str) -> None:
        self.log(
            action=AuditAction.TLS_CONNECT,
            resource=endpoint,
            details={"kind": kind},
            success=False,
            error=error,
        )


def setup_logging(
    level: str = "INFO",
    format: str = "text",
    logger_name: str = "kstools",
) -> logging.Logger:
    """
    Set up logging configuration.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format: Output format ("text" or "json")
        logger_name: Name of the root logger

    Returns:
        Configured logger
    """
    logger = logging.getLogger(logger_name)
    logger.setLevel(getattr(logging, level.upper()))
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(getattr(logging, level.upper()))

    if format.lower() == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(TextFormatter())

    logger.addHandler(handler)
    logger.propagate = False

    return logger


def get_logger(name: str = "kstools") -> StructuredLogger:
    """
    Get a structured logger.

    Args:
        name: Logger name (will be prefixed with "kstools.")
    """
    if not name.startswith("kstools"):
        name = f"kstools.{name}"

    return StructuredLogger(logging.getLogger(name), {})


def get_audit_logger() -> AuditLogger:
    """Get the audit logger."""
    return AuditLogger()


_initialized = False


def init_logging(level: str | None = None) -> None:
    """Initialize logging from settings, optionally overriding the level."""
    global _initialized
    if _initialized and level is None:
        return

    settings = get_settings()
    setup_logging(
        level=level or settings.log_level,
        format=settings.log_format,
    )
    _initialized = True

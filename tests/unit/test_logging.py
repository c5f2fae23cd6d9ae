"""Tests for kstools.logging module."""

import json
import logging
import sys
from unittest.mock import patch

import pytest

from kstools.logging import (
    AuditAction,
    AuditLogger,
    JSONFormatter,
    StructuredLogger,
    TextFormatter,
    get_audit_logger,
    get_logger,
    setup_logging,
)


def make_record(level=logging.INFO, msg="Test message", extra=None, exc_info=None):
    record = logging.LogRecord(
        name="kstools.test",
        level=level,
        pathname="converter.py",
        lineno=42,
        msg=msg,
        args=(),
        exc_info=exc_info,
    )
    if extra is not None:
        record.extra = extra
    return record


class TestAuditAction:
    """Tests for AuditAction enum."""

    def test_values(self):
        assert AuditAction.KEYSTORE_CONVERT.value == "keystore.convert"
        assert AuditAction.KEYSTORE_INSPECT.value == "keystore.inspect"
        assert AuditAction.TLS_CONNECT.value == "tls.connect"
        assert AuditAction.TLS_SERVE.value == "tls.serve"


class TestJSONFormatter:
    """Tests for JSONFormatter."""

    def test_basic_fields(self):
        """Test the basic record fields are present."""
        data = json.loads(JSONFormatter().format(make_record()))

        assert data["level"] == "INFO"
        assert data["logger"] == "kstools.test"
        assert data["message"] == "Test message"
        assert "timestamp" in data
        assert "location" not in data

    def test_extra_fields_merged(self):
        record = make_record(extra={"alias": "client", "copied": 1})
        data = json.loads(JSONFormatter().format(record))

        assert data["alias"] == "client"
        assert data["copied"] == 1

    def test_debug_includes_location(self):
        data = json.loads(JSONFormatter().format(make_record(level=logging.DEBUG)))
        assert data["location"]["line"] == 42

    def test_exception(self):
        try:
            raise ValueError("bad keystore")
        except ValueError:
            record = make_record(level=logging.ERROR, exc_info=sys.exc_info())

        data = json.loads(JSONFormatter().format(record))
        assert "ValueError: bad keystore" in data["exception"]


class TestTextFormatter:
    """Tests for TextFormatter."""

    def test_basic_format(self):
        output = TextFormatter().format(make_record(level=logging.WARNING))

        assert "WARNING" in output
        assert "[kstools.test]" in output
        assert "Test message" in output

    def test_extra_fields_appended(self):
        output = TextFormatter().format(make_record(extra={"alias": "client"}))
        assert output.endswith("| alias=client")

    def test_empty_extra_not_appended(self):
        output = TextFormatter().format(make_record(extra={}))
        assert "|" not in output


class TestStructuredLogger:
    """Tests for StructuredLogger."""

    def test_fields_become_extra(self):
        """Test per-call fields are merged with the adapter context."""
        logger = StructuredLogger(logging.getLogger("kstools.test"), {"source": "a.jks"})
        msg, kwargs = logger.process("Copied entry", {"fields": {"alias": "client"}})

        assert msg == "Copied entry"
        assert kwargs["extra"] == {"extra": {"source": "a.jks", "alias": "client"}}
        assert "fields" not in kwargs

    def test_without_fields(self):
        logger = StructuredLogger(logging.getLogger("kstools.test"), {})
        _, kwargs = logger.process("msg", {})
        assert kwargs["extra"] == {"extra": {}}

    def test_with_context(self):
        logger = StructuredLogger(logging.getLogger("kstools.test"), {"a": 1})
        child = logger.with_context(b=2)

        assert child.extra == {"a": 1, "b": 2}
        assert logger.extra == {"a": 1}

    def test_emits_record_with_extra(self):
        """Test records carry the fields as their extra payload."""
        records = []
        handler = logging.Handler()
        handler.emit = records.append
        logger = get_logger("test.emit")
        logger.logger.addHandler(handler)
        logger.logger.setLevel(logging.INFO)
        try:
            logger.info("Converted", fields={"copied": 2})
        finally:
            logger.logger.removeHandler(handler)

        assert records[-1].getMessage() == "Converted"
        assert records[-1].extra == {"copied": 2}


class TestAuditLogger:
    """Tests for AuditLogger."""

    @pytest.fixture
    def audit_logger(self):
        return AuditLogger(logging.getLogger("kstools.test.audit"))

    def test_log_success(self, audit_logger):
        """Test successful actions are logged at INFO."""
        with patch.object(audit_logger.logger, "log") as mock_log:
            audit_logger.log(AuditAction.KEYSTORE_INSPECT, resource="alice.store")

        assert mock_log.call_args[0][0] == logging.INFO
        extra = mock_log.call_args[1]["extra"]["extra"]
        assert extra["audit"] is True
        assert extra["action"] == "keystore.inspect"
        assert extra["success"] is True
        assert extra["resource"] == "alice.store"
        assert "error" not in extra

    def test_log_failure(self, audit_logger):
        """Test failed actions are logged at WARNING."""
        with patch.object(audit_logger.logger, "log") as mock_log:
            audit_logger.log(AuditAction.TLS_CONNECT, success=False, error="refused")

        assert mock_log.call_args[0][0] == logging.WARNING
        extra = mock_log.call_args[1]["extra"]["extra"]
        assert extra["success"] is False
        assert extra["error"] == "refused"
        assert "failed" in mock_log.call_args[0][1]

    def test_keystore_converted(self, audit_logger):
        with patch.object(audit_logger.logger, "log") as mock_log:
            audit_logger.keystore_converted(
                source="alice.store",
                destination="alice.p12",
                dest_format="pkcs12",
                copied=["client"],
                skipped=["ca-root"],
            )

        extra = mock_log.call_args[1]["extra"]["extra"]
        assert extra["action"] == "keystore.convert"
        assert extra["details"] == {
            "destination": "alice.p12",
            "dest_format": "pkcs12",
            "copied": ["client"],
            "skipped": ["ca-root"],
        }

    def test_conversion_failed(self, audit_logger):
        with patch.object(audit_logger.logger, "log") as mock_log:
            audit_logger.conversion_failed("alice.store", "alice.p12", "bad password")

        assert mock_log.call_args[0][0] == logging.WARNING
        extra = mock_log.call_args[1]["extra"]["extra"]
        assert extra["error"] == "bad password"
        assert extra["details"]["destination"] == "alice.p12"

    def test_tls_connected(self, audit_logger):
        with patch.object(audit_logger.logger, "log") as mock_log:
            audit_logger.tls_connected("localhost:8800", "CN=server", "TLS_AES_256_GCM_SHA384")

        extra = mock_log.call_args[1]["extra"]["extra"]
        assert extra["action"] == "tls.connect"
        assert extra["resource"] == "localhost:8800"
        assert extra["details"]["peer"] == "CN=server"

    def test_tls_connect_failed(self, audit_logger):
        with patch.object(audit_logger.logger, "log") as mock_log:
            audit_logger.tls_connect_failed("localhost:8800", "network", "refused")

        assert mock_log.call_args[0][0] == logging.WARNING
        extra = mock_log.call_args[1]["extra"]["extra"]
        assert extra["details"] == {"kind": "network"}

    def test_default_logger_name(self):
        assert get_audit_logger().logger.name == "kstools.audit"


class TestSetupLogging:
    """Tests for setup_logging and get_logger."""

    def test_text_format(self):
        logger = setup_logging(level="DEBUG", format="text", logger_name="kstools.test.setup")

        assert logger.level == logging.DEBUG
        assert len(logger.handlers) == 1
        assert isinstance(logger.handlers[0].formatter, TextFormatter)
        assert logger.propagate is False

    def test_json_format_replaces_handlers(self):
        setup_logging(logger_name="kstools.test.setup2")
        logger = setup_logging(level="warning", format="json", logger_name="kstools.test.setup2")

        assert logger.level == logging.WARNING
        assert len(logger.handlers) == 1
        assert isinstance(logger.handlers[0].formatter, JSONFormatter)

    def test_get_logger_prefix(self):
        assert get_logger("converter").logger.name == "kstools.converter"
        assert get_logger("kstools.tls").logger.name == "kstools.tls"
        assert get_logger().logger.name == "kstools"

"""Tests for logging setup and security event logging."""

import json
import logging

import pytest

from gsos.core.audit.sinks import LoggingAuditSink
from gsos.core.logger import RedactingFormatter, log_security_event, setup_logger


class TestSetupLogger:

    def test_invalid_level(self, tmp_path):
        with pytest.raises(ValueError):
            setup_logger("gsos.test.invalid", log_dir=str(tmp_path), level="LOUD")

    def test_file_output_is_redacted(self, tmp_path):
        logger = setup_logger("gsos.test.file", log_dir=str(tmp_path), console_logging=False)
        logger.info("password reset for jane@example.org")
        for handler in logger.handlers:
            handler.flush()

        content = (tmp_path / "gsos.test.file.log").read_text()
        assert "jane@example.org" not in content
        assert "[REDACTED_EMAIL]" in content
        assert "[INFO] [gsos.test.file]" in content

    def test_audit_lines_keep_timestamps(self, tmp_path):
        setup_logger("gsos.test.auditline", log_dir=str(tmp_path), console_logging=False)
        stamp = "2026-10-19T06:12:27.173982+00:00"
        LoggingAuditSink("gsos.test.auditline").write({
            "id": "e1",
            "timestamp": stamp,
            "retain_until": "2033-10-17T06:12:27.173982+00:00",
            "reason": "contacted jane@example.org",
            "severity": "info",
        })
        for handler in logging.getLogger("gsos.test.auditline").handlers:
            handler.flush()

        line = (tmp_path / "gsos.test.auditline.log").read_text().strip()
        payload = json.loads(line.split(" ", 3)[3])
        assert payload["timestamp"] == stamp
        assert payload["retain_until"] == "2033-10-17T06:12:27.173982+00:00"
        assert payload["reason"] == "contacted [REDACTED_EMAIL]"

    def test_handlers_not_duplicated(self, tmp_path):
        first = setup_logger("gsos.test.dup", log_dir=str(tmp_path), file_logging=False)
        second = setup_logger("gsos.test.dup", log_dir=str(tmp_path), file_logging=False)
        assert first is second
        assert len(second.handlers) == 1


class TestRedactingFormatter:

    def test_scrubs_arguments(self):
        record = logging.LogRecord("x", logging.INFO, __file__, 1, "token %s", ("Bearer abc.def",), None)
        assert RedactingFormatter("%(message)s").format(record) == "token [REDACTED_BEARER_TOKEN]"


class TestSecurityEvents:

    def _payload(self, record):
        return json.loads(record.getMessage().split(" ", 3)[3])

    @pytest.mark.parametrize("severity, level", [
        ("low", logging.WARNING),
        ("medium", logging.WARNING),
        ("high", logging.ERROR),
        ("critical", logging.ERROR),
    ])
    def test_levels(self, caplog, severity, level):
        with caplog.at_level(logging.DEBUG, logger="gsos.security"):
            log_security_event("rate_limit_exceeded", severity)
        (record,) = [r for r in caplog.records if r.name == "gsos.security"]
        assert record.levelno == level

    def test_metadata_redacted(self, caplog):
        with caplog.at_level(logging.WARNING, logger="gsos.security"):
            log_security_event("rate_limit_exceeded", ip="203.0.113.1", email="a@b.io")
        (record,) = [r for r in caplog.records if r.name == "gsos.security"]
        payload = self._payload(record)
        assert payload["email"] == "[REDACTED_PII]"
        assert payload["security_event"] is True
        assert payload["severity"] == "medium"

"""Tests for the logging audit sink, performance collector and bot detectors."""

from __future__ import annotations

import logging

import pytest

from authguard.config.settings import Settings
from authguard.security.audit import AuditEventType, LoggingAuditSink
from authguard.security.bots import NullBotDetector, PatternBotDetector
from authguard.security.telemetry import LoggingPerformanceCollector
from authguard.security.validation import generate_secure_hash


class TestLoggingAuditSink:

    def test_violation_is_logged_with_record(self, make_request, caplog):
        sink = LoggingAuditSink(config=Settings())
        request = make_request(method="POST", headers={"User-Agent": "Mozilla/5.0"}, source_ip="203.0.113.9")

        with caplog.at_level(logging.WARNING, logger="authguard.audit"):
            sink.log_security_violation(AuditEventType.CSRF_VIOLATION, request, "bad token", {"code": "x"})

        record = caplog.records[-1]
        assert record.levelno == logging.WARNING
        assert "csrf_violation" in record.getMessage()
        assert record.audit["client_ip"] == "203.0.113.9"
        assert record.audit["endpoint"] == "/handler/signin"
        assert record.audit["method"] == "POST"
        assert record.audit["user_agent"] == "Mozilla/5.0"
        assert record.audit["details"] == {"code": "x"}

    def test_client_ip_hashed_when_configured(self, make_request):
        sink = LoggingAuditSink(config=Settings(hash_sensitive_data=True))
        record = sink.build_record("rate_limit_exceeded", make_request(source_ip="203.0.113.9"), "slow down")

        assert record["client_ip"] == generate_secure_hash("203.0.113.9")
        assert record["event_type"] == "rate_limit_exceeded"
        assert record["user_agent"] == "unknown"


class TestLoggingPerformanceCollector:

    def test_operation_logged_once(self, make_request, caplog):
        collector = LoggingPerformanceCollector()

        with caplog.at_level(logging.DEBUG, logger="authguard.performance"):
            tracker = collector.start_operation("signin", make_request())
            tracker.success()
            tracker.error()

        records = [r for r in caplog.records if r.name == "authguard.performance"]
        assert len(records) == 1
        assert records[0].outcome == "succeeded"
        assert records[0].duration_ms >= 0


class TestBotDetectors:

    @pytest.mark.parametrize("user_agent,expected", [
        ("Googlebot/2.1 (+http://www.google.com/bot.html)", True),
        ("curl/8.4.0", True),
        ("python-requests/2.31", True),
        ("Mozilla/5.0 (Macintosh; Intel Mac OS X 14_0) Safari/605.1.15", False),
        ("", False),
        (None, False),
    ])
    def test_pattern_detector(self, user_agent, expected):
        assert PatternBotDetector().is_bot(user_agent) is expected

    def test_custom_patterns(self):
        detector = PatternBotDetector(patterns=[r"monitor"])
        assert detector.is_bot("UptimeMonitor/1.0")
        assert not detector.is_bot("curl/8.4.0")

    def test_null_detector(self):
        assert NullBotDetector().is_bot("Googlebot") is False

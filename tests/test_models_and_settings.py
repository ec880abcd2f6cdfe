"""Tests for request parsing, settings and the exception hierarchy."""

from __future__ import annotations

import logging

import pytest
from pydantic import ValidationError as PydanticValidationError

from authguard.config.settings import Settings, configure_logging
from authguard.core.models import APIRequest, RateLimitConfig, RateLimitResult, SecurityValidationOptions
from authguard.utils.exceptions import (
    AuthGuardError,
    RateLimitExceededError,
    SecurityAwareExceptionHandler,
    SecurityError,
    SecurityErrorCode,
    ValidationError,
)


class TestAPIRequest:

    def test_from_v1_event(self, make_event):
        event = make_event(
            method="post",
            query={"email": "a+b@example.com", "next": None},
            headers={"Cookie": "theme=dark; session=abc"},
        )
        request = APIRequest.from_lambda_event(event)

        assert request.method == "POST"
        assert request.url == "https://auth.example.com/handler/signin?email=a%2Bb%40example.com"
        assert request.query_param("email") == "a+b@example.com"
        assert request.query_param("next") is None
        assert request.source_ip == "203.0.113.10"
        assert request.cookie("session") == "abc"
        assert request.header("HOST") == "auth.example.com"
        assert request.is_https is True

    def test_from_v2_event(self):
        request = APIRequest.from_lambda_event({
            "version": "2.0",
            "rawPath": "/handler/user",
            "rawQueryString": "a=1",
            "cookies": ["x=1", "y=2"],
            "headers": {"host": "localhost:3000"},
            "requestContext": {"http": {"method": "DELETE", "sourceIp": "198.51.100.2"}},
        })

        assert request.method == "DELETE"
        assert request.url == "http://localhost:3000/handler/user?a=1"
        assert request.path == "/handler/user"
        assert request.cookies == {"x": "1", "y": "2"}
        assert request.source_ip == "198.51.100.2"
        assert request.is_https is False

    def test_null_header_values_are_dropped(self, make_event):
        event = make_event(headers={"X-Forwarded-Proto": None, "Host": None, "User-Agent": None})
        request = APIRequest.from_lambda_event(event)

        assert request.url == "http://localhost/handler/signin"
        assert request.header("user-agent") is None
        assert request.is_https is False

    def test_empty_event(self):
        request = APIRequest.from_lambda_event({})
        assert request.method == "GET"
        assert request.path == "/"
        assert request.source_ip is None

    def test_headers_are_lower_cased(self):
        request = APIRequest(headers={"X-CSRF-Token": "abc", "X-Empty": None})
        assert request.headers == {"x-csrf-token": "abc"}
        assert request.header("x-csrf-TOKEN") == "abc"

    def test_explicit_cookies_win(self):
        request = APIRequest(headers={"Cookie": "a=1"}, cookies={"b": "2"})
        assert request.cookies == {"b": "2"}

    def test_quoted_and_duplicate_cookies(self):
        request = APIRequest(headers={"Cookie": 'a="1"; a=2; broken; =x'})
        assert request.cookies == {"a": "1"}


class TestRateLimitModels:

    def test_config_is_immutable(self):
        config = RateLimitConfig()
        with pytest.raises(PydanticValidationError):
            config.max_requests = 5

    def test_config_rejects_non_positive_limits(self):
        with pytest.raises(PydanticValidationError):
            RateLimitConfig(max_requests=0)
        with pytest.raises(PydanticValidationError):
            RateLimitConfig(window_seconds=0)

    def test_reset_iso(self):
        result = RateLimitResult(success=True, limit=1, remaining=0, reset_time=1_700_000_000.5)
        assert result.reset_iso() == "2023-11-14T22:13:20.500Z"

    def test_options_reject_unknown_fields(self):
        with pytest.raises(PydanticValidationError):
            SecurityValidationOptions(require_crsf=True)


class TestSettings:

    def test_defaults(self):
        config = Settings()
        assert config.default_rate_limit == 100
        assert config.default_rate_window_seconds == 900
        assert config.is_production is False

    def test_environment_is_normalized(self):
        assert Settings(environment=" Production ").is_production is True
        assert Settings(environment="prod").is_production is True

    def test_debug_logging_forbidden_in_production(self):
        with pytest.raises(PydanticValidationError):
            Settings(environment="production", enable_debug_logging=True)

    def test_debug_logging_allowed_in_development(self):
        assert Settings(environment="development", enable_debug_logging=True).enable_debug_logging

    def test_origin_trailing_slash_removed(self):
        config = Settings(allowed_origins=["https://app.example.com/", ""])
        assert config.allowed_origins == ["https://app.example.com"]

    def test_invalid_log_level(self):
        with pytest.raises(PydanticValidationError):
            Settings(log_level="verbose")

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("AUTHGUARD_DEFAULT_RATE_LIMIT", "7")
        monkeypatch.setenv("AUTHGUARD_TRUST_PROXY_HEADERS", "false")
        config = Settings()
        assert config.default_rate_limit == 7
        assert config.trust_proxy_headers is False

    def test_configure_logging(self):
        logger = logging.getLogger("authguard")
        previous = logger.level
        try:
            configure_logging(Settings(log_level="ERROR"))
            assert logger.level == logging.ERROR
            configure_logging(Settings(enable_debug_logging=True))
            assert logger.level == logging.DEBUG
        finally:
            logger.setLevel(previous)


class TestExceptions:

    def test_security_error_code(self):
        error = SecurityError("Invalid CSRF token", "CSRF_TOKEN_INVALID")
        assert error.code is SecurityErrorCode.CSRF_TOKEN_INVALID
        assert error.error_code == "CSRF_TOKEN_INVALID"
        assert isinstance(error, AuthGuardError)

    def test_unknown_code_rejected(self):
        with pytest.raises(ValueError):
            SecurityError("boom", "NOT_A_CODE")

    def test_rate_limit_error_details(self):
        result = RateLimitResult(success=False, limit=5, remaining=0, reset_time=0, retry_after=30)
        error = RateLimitExceededError("slow down", result)
        assert error.details == {"code": "RATE_LIMIT_EXCEEDED", "limit": 5, "retry_after": 30}
        assert error.to_dict()["error_type"] == "RateLimitExceededError"

    @pytest.mark.parametrize("error,status", [
        (ValidationError("bad"), 400),
        (SecurityError("x", SecurityErrorCode.CSRF_TOKEN_INVALID), 403),
        (SecurityError("x", SecurityErrorCode.ORIGIN_NOT_ALLOWED), 403),
        (SecurityError("x", SecurityErrorCode.INSECURE_TRANSPORT), 400),
        (SecurityError("x", SecurityErrorCode.METHOD_NOT_ALLOWED), 405),
        (SecurityError("x", SecurityErrorCode.RATE_LIMIT_EXCEEDED), 429),
        (RuntimeError("x"), 500),
    ])
    def test_status_codes(self, error, status):
        assert SecurityAwareExceptionHandler.get_status_code(error) == status

    def test_security_details_are_not_exposed(self):
        error = SecurityError("Origin https://evil.example.net not in allow-list", SecurityErrorCode.ORIGIN_NOT_ALLOWED)
        response = SecurityAwareExceptionHandler.get_public_error_response(error, "req-1")
        assert response == {
            "error": "Request blocked for security reasons",
            "request_id": "req-1",
            "error_code": "ORIGIN_NOT_ALLOWED",
        }

    def test_unknown_errors_are_generic(self):
        response = SecurityAwareExceptionHandler.get_public_error_response(KeyError("secret"), "req-2")
        assert response["error"] == "An unexpected error occurred"
        assert response["error_code"] == "UNKNOWN"

    def test_alerting(self):
        assert SecurityAwareExceptionHandler.should_alert_security_team(
            SecurityError("x", SecurityErrorCode.CSRF_TOKEN_INVALID)
        )
        assert not SecurityAwareExceptionHandler.should_alert_security_team(ValidationError("x"))

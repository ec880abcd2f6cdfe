"""
Security middleware for authentication handlers.
Applies request checks, rate limiting and response hardening in one place.
"""

import functools
import inspect
import json
import logging
import time
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple

from authguard.config.settings import settings, Settings
from authguard.core.models import (
    APIRequest, RateLimitConfig, RateLimitResult, SecurityValidationOptions
)
from authguard.security.audit import AuditSink, LoggingAuditSink, EVENT_TYPE_BY_CODE
from authguard.security.bots import BotDetector, PatternBotDetector, NullBotDetector
from authguard.security.context import SecurityContextValidator
from authguard.security.origin import add_security_headers
from authguard.security.rate_limiting import (
    InMemoryRateLimitStore, RateLimiter, RATE_LIMIT_CONFIGS
)
from authguard.security.telemetry import PerformanceCollector, LoggingPerformanceCollector, OperationTracker
from authguard.security.validation import InputValidator, generate_secure_hash
from authguard.utils.exceptions import (
    AuthGuardError, SecurityError, SecurityErrorCode, SecurityAwareExceptionHandler
)

Response = Dict[str, Any]
KeyGenerator = Callable[[APIRequest], str]


class RateLimitMiddleware:
    """
    Wraps a handler with one rate-limit configuration.

    Admitted responses get ``X-RateLimit-*`` headers; rejected requests get
    a 429 without reaching the handler. Errors other than
    RATE_LIMIT_EXCEEDED propagate unchanged.
    """

    def __init__(self, limiter: RateLimiter, config: RateLimitConfig,
                 key_generator: Optional[KeyGenerator] = None,
                 on_rejected: Optional[Callable[[APIRequest, SecurityError], None]] = None):
        self.limiter = limiter
        self.config = config
        self.key_generator = key_generator
        self.on_rejected = on_rejected

    def _key(self, request: APIRequest) -> Optional[str]:
        return self.key_generator(request) if self.key_generator else None

    def _admit(self, request: APIRequest) -> Tuple[Optional[RateLimitResult], Optional[Response]]:
        try:
            return self.limiter.enforce_rate_limit(request, self.config, self._key(request)), None
        except SecurityError as e:
            if e.code is not SecurityErrorCode.RATE_LIMIT_EXCEEDED:
                raise
            if self.on_rejected is not None:
                self.on_rejected(request, e)
            return None, self.too_many_requests(e)

    def __call__(self, request: APIRequest, call_next: Callable[[APIRequest], Response]) -> Response:
        result, rejection = self._admit(request)
        if rejection is not None:
            return rejection
        return self.attach_headers(call_next(request), result)

    async def dispatch(self, request: APIRequest,
                       call_next: Callable[[APIRequest], Awaitable[Response]]) -> Response:
        result, rejection = self._admit(request)
        if rejection is not None:
            return rejection
        return self.attach_headers(await call_next(request), result)

    def clear(self, request: APIRequest) -> None:
        """Call after a successful authentication."""
        self.limiter.clear_rate_limit(request, self.config, self._key(request))

    @staticmethod
    def attach_headers(response: Response, result: RateLimitResult) -> Response:
        if not isinstance(response, dict):
            return response
        headers = response.get('headers') or {}
        headers['X-RateLimit-Limit'] = str(result.limit)
        headers['X-RateLimit-Remaining'] = str(result.remaining)
        headers['X-RateLimit-Reset'] = result.reset_iso()
        response['headers'] = headers
        return response

    def too_many_requests(self, error: SecurityError) -> Response:
        rate_limit = getattr(error, 'rate_limit', None)
        if rate_limit is None:
            rate_limit = RateLimitResult(
                success=False,
                limit=self.config.max_requests,
                remaining=0,
                reset_time=self.limiter.store.clock() + self.config.window_seconds,
                retry_after=60
            )
        retry_after = rate_limit.retry_after if rate_limit.retry_after is not None else 60

        return {
            'statusCode': 429,
            'headers': {
                'Content-Type': 'application/json',
                'Cache-Control': 'no-store',
                'Retry-After': str(retry_after),
                'X-RateLimit-Limit': str(rate_limit.limit),
                'X-RateLimit-Remaining': '0',
                'X-RateLimit-Reset': rate_limit.reset_iso()
            },
            'body': json.dumps({
                "error": "Rate limit exceeded",
                "message": error.message,
                "retryAfter": retry_after
            })
        }


def _password_reset_key(validator: InputValidator) -> KeyGenerator:
    def key(request: APIRequest) -> str:
        email = request.query_param('email')
        if email:
            return validator.generate_rate_limit_key(request, 'user', email.lower())
        return validator.generate_rate_limit_key(request, 'ip')
    return key


def _authenticated_user_key(validator: InputValidator) -> KeyGenerator:
    def key(request: APIRequest) -> str:
        user = request.locals.get('user')
        user_id = user.get('id') if isinstance(user, dict) else getattr(user, 'id', None)
        if user_id:
            return validator.generate_rate_limit_key(request, 'user', str(user_id))
        return validator.generate_rate_limit_key(request, 'ip')
    return key


class RateLimiters:
    """Preset middlewares sharing one limiter."""

    def __init__(self, limiter: RateLimiter):
        self.limiter = limiter

    def auth_attempts(self) -> RateLimitMiddleware:
        """20 attempts per 15 minutes per IP."""
        return RateLimitMiddleware(self.limiter, RATE_LIMIT_CONFIGS['AUTH_ENDPOINTS'])

    def password_reset(self) -> RateLimitMiddleware:
        """5 per hour, keyed by the ``email`` query parameter when present."""
        return RateLimitMiddleware(
            self.limiter, RATE_LIMIT_CONFIGS['PASSWORD_RESET'],
            _password_reset_key(self.limiter.input_validator)
        )

    def sensitive_operations(self) -> RateLimitMiddleware:
        """3 per hour, keyed by the authenticated user when there is one."""
        return RateLimitMiddleware(
            self.limiter, RATE_LIMIT_CONFIGS['SENSITIVE_OPERATIONS'],
            _authenticated_user_key(self.limiter.input_validator)
        )

    def general(self) -> RateLimitMiddleware:
        """100 per 15 minutes per IP."""
        return RateLimitMiddleware(self.limiter, RATE_LIMIT_CONFIGS['GENERAL_API'])


class SecurityMiddleware:
    """
    Full request pipeline for authentication handlers.

    Order: request parsing, bot annotation, transport/origin/CSRF checks,
    rate limiting, the handler, then security headers. ``AuthGuardError``
    is turned into a JSON error response; any other exception propagates.
    """

    def __init__(self, rate_limiter: Optional[RateLimiter] = None,
                 rate_limit_config: Optional[RateLimitConfig] = None,
                 validation_options: Optional[SecurityValidationOptions] = None,
                 config: Settings = settings,
                 key_generator: Optional[KeyGenerator] = None,
                 context_validator: Optional[SecurityContextValidator] = None,
                 bot_detector: Optional[BotDetector] = None,
                 audit_sink: Optional[AuditSink] = None,
                 performance_collector: Optional[PerformanceCollector] = None):
        self.config = config
        self._owned_store = None
        if rate_limiter is None:
            self._owned_store = InMemoryRateLimitStore(sweep_interval=config.rate_limit_sweep_interval_seconds)
            rate_limiter = RateLimiter(self._owned_store, InputValidator(config=config))
        self.rate_limiter = rate_limiter

        self.rate_limit_config = rate_limit_config or RateLimitConfig(
            window_seconds=config.default_rate_window_seconds,
            max_requests=config.default_rate_limit
        )
        self.rate_limit = RateLimitMiddleware(
            rate_limiter, self.rate_limit_config, key_generator, on_rejected=self._audit_violation
        )
        self.validation_options = validation_options or SecurityValidationOptions(
            allowed_origins=config.allowed_origins
        )
        self.context_validator = context_validator or SecurityContextValidator(config)

        if bot_detector is None:
            bot_detector = PatternBotDetector() if config.enable_bot_detection else NullBotDetector()
        self.bot_detector = bot_detector
        self.audit_sink = audit_sink or LoggingAuditSink(config=config)
        self.performance = performance_collector or LoggingPerformanceCollector()
        self._security_logger = logging.getLogger("authguard.security")

    def secure_handler(self, func: Callable) -> Callable:
        """
        Decorator that applies the security pipeline to a handler.

        The handler is called as ``func(request, context)`` with an
        ``APIRequest``; the wrapper accepts a Lambda proxy event or an
        ``APIRequest``. Coroutine handlers get an async wrapper.
        """
        operation = getattr(func, "__name__", type(func).__name__)

        if inspect.iscoroutinefunction(func):
            @functools.wraps(func)
            async def async_wrapper(event: Any, context: Any = None) -> Response:
                request, request_id, tracker, start_time = self._begin(event, operation)
                try:
                    self.context_validator.validate_api_context(request, self.validation_options)
                    response = await self.rate_limit.dispatch(request, lambda req: func(req, context))
                except AuthGuardError as e:
                    return self._handle_security_error(e, request, request_id, tracker, start_time)
                except Exception:
                    tracker.error()
                    raise
                return self._finish(response, request_id, tracker, start_time)

            return async_wrapper

        @functools.wraps(func)
        def wrapper(event: Any, context: Any = None) -> Response:
            request, request_id, tracker, start_time = self._begin(event, operation)
            try:
                self.context_validator.validate_api_context(request, self.validation_options)
                response = self.rate_limit(request, lambda req: func(req, context))
            except AuthGuardError as e:
                return self._handle_security_error(e, request, request_id, tracker, start_time)
            except Exception:
                tracker.error()
                raise
            return self._finish(response, request_id, tracker, start_time)

        return wrapper

    def clear_rate_limit(self, request: APIRequest) -> None:
        """Forget the caller's attempts after a successful authentication."""
        self.rate_limit.clear(request)

    def close(self) -> None:
        """Stop the rate-limit store this middleware created, if any."""
        if self._owned_store is not None:
            self._owned_store.close()

    def _begin(self, event: Any, operation: str) -> Tuple[APIRequest, str, OperationTracker, float]:
        start_time = time.time()
        request = event if isinstance(event, APIRequest) else APIRequest.from_lambda_event(event)
        request_id = self._generate_secure_request_id(event, request)
        request.locals['request_id'] = request_id

        user_agent = request.header('user-agent')
        request.locals['is_bot'] = self.bot_detector.is_bot(user_agent)

        self._log_security_event("request_started", {
            "request_id": request_id,
            "source_ip": self.rate_limiter.input_validator.get_client_ip(request),
            "method": request.method,
            "path": request.path,
            "is_bot": request.locals['is_bot']
        })

        tracker = self.performance.start_operation(operation, request)
        return request, request_id, tracker, start_time

    def _finish(self, response: Any, request_id: str, tracker: OperationTracker, start_time: float) -> Response:
        secured_response = self._secure_response(response, request_id)
        tracker.success()

        self._log_security_event("request_completed", {
            "request_id": request_id,
            "status": secured_response.get('statusCode'),
            "duration_ms": (time.time() - start_time) * 1000
        })
        return secured_response

    def _generate_secure_request_id(self, event: Any, request: APIRequest) -> str:
        """Generate request ID for tracking."""
        upstream_id = 'unknown'
        if isinstance(event, dict):
            upstream_id = (event.get('requestContext') or {}).get('requestId', 'unknown')
        source_ip = self.rate_limiter.input_validator.get_client_ip(request)
        content = f"{time.time()}:{source_ip}:{upstream_id}"
        return generate_secure_hash(content)[:16]

    def _secure_response(self, response: Any, request_id: str) -> Response:
        """Apply security headers to the handler's response."""
        if not isinstance(response, dict):
            response = {'statusCode': 500, 'body': 'Internal error'}

        headers = response.get('headers') or {}
        add_security_headers(headers, {'X-Request-ID': request_id})
        response['headers'] = headers
        return response

    def _audit_violation(self, request: APIRequest, error: SecurityError) -> None:
        self.audit_sink.log_security_violation(
            EVENT_TYPE_BY_CODE[error.code], request, error.message, dict(error.details)
        )

    def _handle_security_error(self, exception: AuthGuardError, request: APIRequest, request_id: str,
                               tracker: OperationTracker, start_time: float) -> Response:
        """Turn an engine error into a safe JSON response."""
        tracker.error()

        if isinstance(exception, SecurityError):
            self._audit_violation(request, exception)

        self._log_security_event("request_failed", {
            "request_id": request_id,
            "error_type": exception.__class__.__name__,
            "error_code": exception.error_code,
            "duration_ms": (time.time() - start_time) * 1000,
            "should_alert": SecurityAwareExceptionHandler.should_alert_security_team(exception)
        })

        if isinstance(exception, SecurityError) and exception.code is SecurityErrorCode.RATE_LIMIT_EXCEEDED:
            return self._secure_response(self.rate_limit.too_many_requests(exception), request_id)

        headers = add_security_headers({
            'X-Request-ID': request_id,
            'Content-Type': 'application/json'
        })
        return {
            'statusCode': SecurityAwareExceptionHandler.get_status_code(exception),
            'headers': headers,
            'body': json.dumps(SecurityAwareExceptionHandler.get_public_error_response(exception, request_id))
        }

    def _log_security_event(self, event_type: str, details: Dict[str, Any]) -> None:
        """Log security events for monitoring and alerting."""
        level = logging.WARNING if details.get('should_alert') else logging.INFO
        self._security_logger.log(level, "%s %s", event_type, json.dumps(details, default=str),
                                  extra={"security_event": event_type, "details": details})

    def set_security_logger(self, logger: logging.Logger) -> None:
        """Set the security logger instance."""
        self._security_logger = logger

"""
Security-aware custom exceptions with proper error handling.
"""

from enum import Enum
from typing import Optional, Dict, Any, TYPE_CHECKING

if TYPE_CHECKING:
    from authguard.core.models import RateLimitResult


class SecurityErrorCode(str, Enum):
    """Machine-readable codes carried by SecurityError."""
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    CSRF_TOKEN_INVALID = "CSRF_TOKEN_INVALID"
    ORIGIN_NOT_ALLOWED = "ORIGIN_NOT_ALLOWED"
    INSECURE_TRANSPORT = "INSECURE_TRANSPORT"
    METHOD_NOT_ALLOWED = "METHOD_NOT_ALLOWED"


class AuthGuardError(Exception):
    """Base exception for authguard with security considerations."""

    def __init__(self, message: str, error_code: str = "UNKNOWN", details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details
        }


class ValidationError(AuthGuardError):
    """Input validation errors - safe to expose to users."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message, "VALIDATION_ERROR")
        self.field = field
        if field:
            self.details["field"] = field
        # Don't include actual value in details for security


class SecurityError(AuthGuardError):
    """Security violations - logged in full, exposed only as a generic message."""

    def __init__(self, message: str, code: SecurityErrorCode):
        code = SecurityErrorCode(code)
        super().__init__(message, code.value)
        self.code = code
        self.details["code"] = code.value

    def get_public_message(self) -> str:
        """Return safe message for public consumption."""
        if self.code is SecurityErrorCode.CSRF_TOKEN_INVALID:
            return "Invalid or missing CSRF token"
        if self.code is SecurityErrorCode.INSECURE_TRANSPORT:
            return "HTTPS required"
        if self.code is SecurityErrorCode.METHOD_NOT_ALLOWED:
            return "Method not allowed"
        return "Request blocked for security reasons"


class RateLimitExceededError(SecurityError):
    """Rate limiting violations, with the limiter's verdict attached."""

    def __init__(self, message: str, rate_limit: "RateLimitResult"):
        super().__init__(message, SecurityErrorCode.RATE_LIMIT_EXCEEDED)
        self.rate_limit = rate_limit
        self.details.update({
            "limit": rate_limit.limit,
            "retry_after": rate_limit.retry_after
        })

    def get_public_message(self) -> str:
        return "Too many requests. Please try again later."


class SecurityAwareExceptionHandler:
    """Utility for handling exceptions with security considerations."""

    STATUS_BY_CODE = {
        SecurityErrorCode.RATE_LIMIT_EXCEEDED: 429,
        SecurityErrorCode.CSRF_TOKEN_INVALID: 403,
        SecurityErrorCode.ORIGIN_NOT_ALLOWED: 403,
        SecurityErrorCode.INSECURE_TRANSPORT: 400,
        SecurityErrorCode.METHOD_NOT_ALLOWED: 405,
    }

    @staticmethod
    def is_safe_to_expose(exception: Exception) -> bool:
        """Determine if an exception is safe to expose to users."""
        safe_exceptions = (ValidationError, RateLimitExceededError)
        return isinstance(exception, safe_exceptions)

    @staticmethod
    def get_status_code(exception: Exception) -> int:
        if isinstance(exception, ValidationError):
            return 400
        if isinstance(exception, SecurityError):
            return SecurityAwareExceptionHandler.STATUS_BY_CODE.get(exception.code, 403)
        return 500

    @staticmethod
    def get_public_error_response(exception: Exception, request_id: str) -> Dict[str, Any]:
        """Generate safe error response for public consumption."""
        if isinstance(exception, AuthGuardError):
            if hasattr(exception, 'get_public_message'):
                message = exception.get_public_message()
            elif SecurityAwareExceptionHandler.is_safe_to_expose(exception):
                message = exception.message
            else:
                message = "An error occurred while processing your request"
        else:
            # Unknown exception - never expose details
            message = "An unexpected error occurred"

        return {
            "error": message,
            "request_id": request_id,
            "error_code": getattr(exception, 'error_code', 'UNKNOWN')
        }

    @staticmethod
    def should_alert_security_team(exception: Exception) -> bool:
        """Determine if security team should be alerted."""
        return isinstance(exception, SecurityError)

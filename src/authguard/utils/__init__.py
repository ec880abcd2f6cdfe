"""
Utility functions and classes.
"""

from .exceptions import (
    AuthGuardError, ValidationError, SecurityError, SecurityErrorCode,
    RateLimitExceededError, SecurityAwareExceptionHandler
)

__all__ = [
    'AuthGuardError', 'ValidationError', 'SecurityError', 'SecurityErrorCode',
    'RateLimitExceededError', 'SecurityAwareExceptionHandler'
]

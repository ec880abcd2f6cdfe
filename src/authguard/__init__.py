"""
Request security and rate limiting for authentication endpoints.
"""

from authguard.config import settings, Settings, SecurityConstants
from authguard.core import (
    APIRequest, RateLimitConfig, RateLimitEntry, RateLimitResult, SecurityValidationOptions
)
from authguard.security import (
    CSRFTokenService, InMemoryRateLimitStore, InputValidator, OriginGuard, RateLimiter,
    RateLimitMiddleware, RateLimiters, SecurityContextValidator, SecurityMiddleware
)
from authguard.utils import ValidationError, SecurityError, SecurityErrorCode, RateLimitExceededError

__version__ = "1.0.0"

__all__ = [
    'settings', 'Settings', 'SecurityConstants',
    'APIRequest', 'RateLimitConfig', 'RateLimitEntry', 'RateLimitResult', 'SecurityValidationOptions',
    'CSRFTokenService', 'InMemoryRateLimitStore', 'InputValidator', 'OriginGuard', 'RateLimiter',
    'RateLimitMiddleware', 'RateLimiters', 'SecurityContextValidator', 'SecurityMiddleware',
    'ValidationError', 'SecurityError', 'SecurityErrorCode', 'RateLimitExceededError',
]

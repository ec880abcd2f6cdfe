"""
Security components and middleware.
"""

from .audit import AuditEventType, AuditSink, LoggingAuditSink
from .bots import BotDetector, PatternBotDetector, NullBotDetector
from .context import SecurityContextValidator
from .csrf import CSRFTokenService
from .middleware import SecurityMiddleware, RateLimitMiddleware, RateLimiters
from .origin import OriginGuard, add_security_headers
from .rate_limiting import (
    RateLimitStore, InMemoryRateLimitStore, RateLimiter, RATE_LIMIT_CONFIGS
)
from .telemetry import PerformanceCollector, LoggingPerformanceCollector
from .validation import InputValidator, validate_auth_method

__all__ = [
    'AuditEventType',
    'AuditSink',
    'LoggingAuditSink',
    'BotDetector',
    'PatternBotDetector',
    'NullBotDetector',
    'SecurityContextValidator',
    'CSRFTokenService',
    'SecurityMiddleware',
    'RateLimitMiddleware',
    'RateLimiters',
    'OriginGuard',
    'add_security_headers',
    'RateLimitStore',
    'InMemoryRateLimitStore',
    'RateLimiter',
    'RATE_LIMIT_CONFIGS',
    'PerformanceCollector',
    'LoggingPerformanceCollector',
    'InputValidator',
    'validate_auth_method',
]

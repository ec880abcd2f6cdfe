"""
Security-focused configuration management.
Environment-based settings with validation.
"""

import logging
import os
from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Engine settings with security validation."""

    model_config = SettingsConfigDict(
        env_prefix="AUTHGUARD_",
        case_sensitive=False,
        # Don't read from .env files in production for security
        env_file=None if os.getenv('ENVIRONMENT') == 'production' else '.env',
        extra='ignore',
    )

    # Deployment
    environment: str = Field("development", pattern=r"^[a-z0-9_-]+$")

    # Rate limiting
    default_rate_limit: int = Field(100, ge=1, le=100000)
    default_rate_window_seconds: int = Field(15 * 60, ge=1, le=86400)
    rate_limit_sweep_interval_seconds: float = Field(300.0, gt=0, le=86400)

    # Request handling
    trust_proxy_headers: bool = Field(True)
    allowed_origins: List[str] = Field(default_factory=list)
    enable_bot_detection: bool = Field(True)

    # Logging Configuration
    log_level: str = Field("INFO", pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$")
    enable_debug_logging: bool = Field(False)
    hash_sensitive_data: bool = Field(False)

    @field_validator('environment', mode='before')
    @classmethod
    def normalize_environment(cls, v):
        return str(v).strip().lower()

    @field_validator('enable_debug_logging')
    @classmethod
    def no_debug_in_production(cls, v, info):
        """Prevent debug logging in production environments."""
        environment = info.data.get('environment') or os.getenv('ENVIRONMENT', '').lower()
        if v and environment in ['production', 'prod']:
            raise ValueError("Debug logging not allowed in production")
        return v

    @field_validator('allowed_origins')
    @classmethod
    def strip_trailing_slashes(cls, v):
        """Origins never carry a path, so 'https://a.com/' means 'https://a.com'."""
        return [origin.rstrip('/') for origin in v if origin]

    @property
    def is_production(self) -> bool:
        return self.environment in ('production', 'prod')


# Global settings instance
settings = Settings()


def configure_logging(config: Settings = settings) -> None:
    """Apply the configured log level to the package loggers."""
    level = logging.DEBUG if config.enable_debug_logging else getattr(logging, config.log_level)
    logging.getLogger("authguard").setLevel(level)


# Security constants (not configurable)
class SecurityConstants:
    """Security-related constants that should not be configurable."""

    # CSRF token settings
    CSRF_TOKEN_LENGTH = 32  # bytes, 64 hex characters
    CSRF_COOKIE_NAME = 'stack-auth-csrf-token'
    CSRF_HEADER_NAME = 'x-csrf-token'
    CSRF_QUERY_PARAM = 'csrf_token'

    # Input validation limits
    MAX_INPUT_LENGTH = 1000
    MAX_URL_LENGTH = 2048

    # Rate limiting defaults
    DEFAULT_RATE_LIMIT = 100  # requests per window
    DEFAULT_RATE_WINDOW_SECONDS = 15 * 60
    SWEEP_INTERVAL_SECONDS = 5 * 60

    # Security headers
    SECURITY_HEADERS = {
        'X-Content-Type-Options': 'nosniff',
        'X-Frame-Options': 'DENY',
        'X-XSS-Protection': '1; mode=block',
        'Referrer-Policy': 'strict-origin-when-cross-origin',
        'Permissions-Policy': 'camera=(), microphone=(), geolocation=()',
    }

    # Redirect schemes that are never allowed, absolute or relative-looking
    DANGEROUS_SCHEMES = ('javascript:', 'data:', 'vbscript:', 'file:')

    # Methods that require a CSRF token
    STATE_CHANGING_METHODS = frozenset({'POST', 'PUT', 'DELETE', 'PATCH'})

    # Proxy headers carrying the client address, in order of preference
    CLIENT_IP_HEADERS = (
        'cf-connecting-ip',  # Cloudflare
        'x-real-ip',  # nginx
        'x-forwarded-for',
        'x-client-ip',
        'x-forwarded',
        'x-cluster-client-ip',
        'forwarded-for',
        'forwarded',
    )
    FALLBACK_CLIENT_IP = '127.0.0.1'

    # User-Agent heuristics for crawlers and scripted clients
    BOT_PATTERNS = (
        r'bot', r'crawler', r'spider', r'scraper',
        r'facebook', r'twitter', r'linkedin',
        r'google', r'bing', r'yahoo', r'baidu',
        r'curl', r'wget', r'python-requests',
    )

"""
Core data models.
"""

from .models import (
    APIRequest, RateLimitConfig, RateLimitEntry, RateLimitResult, SecurityValidationOptions
)

__all__ = [
    'APIRequest', 'RateLimitConfig', 'RateLimitEntry', 'RateLimitResult',
    'SecurityValidationOptions'
]

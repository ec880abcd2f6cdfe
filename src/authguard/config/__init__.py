"""
Configuration management.
"""

from .settings import settings, Settings, SecurityConstants, configure_logging

__all__ = ['settings', 'Settings', 'SecurityConstants', 'configure_logging']

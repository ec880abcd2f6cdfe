"""
Security audit hooks.

Persisting audit records is left to the host application; this module
defines the sink interface the engine reports to and a logging-backed
default.
"""

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from authguard.config.settings import settings, Settings
from authguard.core.models import APIRequest
from authguard.security.validation import InputValidator, generate_secure_hash
from authguard.utils.exceptions import SecurityErrorCode


class AuditEventType(str, Enum):
    """Security events the engine reports."""
    CSRF_VIOLATION = "csrf_violation"
    RATE_LIMIT_EXCEEDED = "rate_limit_exceeded"
    INVALID_ORIGIN = "invalid_origin"
    INSECURE_TRANSPORT = "insecure_transport"
    METHOD_NOT_ALLOWED = "method_not_allowed"
    SUSPICIOUS_ACTIVITY = "suspicious_activity"


EVENT_TYPE_BY_CODE = {
    SecurityErrorCode.CSRF_TOKEN_INVALID: AuditEventType.CSRF_VIOLATION,
    SecurityErrorCode.RATE_LIMIT_EXCEEDED: AuditEventType.RATE_LIMIT_EXCEEDED,
    SecurityErrorCode.ORIGIN_NOT_ALLOWED: AuditEventType.INVALID_ORIGIN,
    SecurityErrorCode.INSECURE_TRANSPORT: AuditEventType.INSECURE_TRANSPORT,
    SecurityErrorCode.METHOD_NOT_ALLOWED: AuditEventType.METHOD_NOT_ALLOWED,
}


class AuditSink:
    """Receives security violations detected while handling a request."""

    def log_security_violation(self, event_type: AuditEventType, request: APIRequest,
                               message: str, details: Optional[Dict[str, Any]] = None) -> None:
        raise NotImplementedError


class LoggingAuditSink(AuditSink):
    """Writes one structured WARNING record per violation."""

    def __init__(self, logger: Optional[logging.Logger] = None, config: Settings = settings,
                 input_validator: Optional[InputValidator] = None):
        self.logger = logger or logging.getLogger("authguard.audit")
        self.config = config
        self.input_validator = input_validator or InputValidator(config=config)

    def build_record(self, event_type: AuditEventType, request: APIRequest,
                     message: str, details: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        client_ip = self.input_validator.get_client_ip(request)
        if self.config.hash_sensitive_data:
            client_ip = generate_secure_hash(client_ip)

        return {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "event_type": AuditEventType(event_type).value,
            "risk_level": "high",
            "client_ip": client_ip,
            "user_agent": (request.header('user-agent') or 'unknown')[:500],
            "endpoint": request.path,
            "method": request.method,
            "success": False,
            "message": message,
            "details": details or {},
        }

    def log_security_violation(self, event_type: AuditEventType, request: APIRequest,
                               message: str, details: Optional[Dict[str, Any]] = None) -> None:
        record = self.build_record(event_type, request, message, details)
        self.logger.warning("SECURITY_VIOLATION %s: %s", record["event_type"], message, extra={"audit": record})

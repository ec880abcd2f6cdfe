"""
Per-request security checks for authentication endpoints.
"""

import logging
from typing import Optional

from authguard.config.settings import settings, Settings, SecurityConstants
from authguard.core.models import APIRequest, SecurityValidationOptions
from authguard.security.csrf import CSRFTokenService
from authguard.security.origin import OriginGuard
from authguard.security.validation import InputValidator
from authguard.utils.exceptions import SecurityError, SecurityErrorCode

logger = logging.getLogger(__name__)


class SecurityContextValidator:
    """
    Applies transport, origin and CSRF checks to one request.

    Checks run in that fixed order and the first failure raises
    ``SecurityError``; later checks are skipped.
    """

    def __init__(self, config: Settings = settings,
                 csrf_service: Optional[CSRFTokenService] = None,
                 origin_guard: Optional[OriginGuard] = None,
                 input_validator: Optional[InputValidator] = None):
        self.config = config
        self.csrf_service = csrf_service or CSRFTokenService()
        self.origin_guard = origin_guard or OriginGuard()
        self.input_validator = input_validator or InputValidator(config=config)

    def validate_api_context(self, request: APIRequest,
                             options: Optional[SecurityValidationOptions] = None) -> None:
        """
        Validate a request against the given options.

        Raises:
            SecurityError: INSECURE_TRANSPORT, ORIGIN_NOT_ALLOWED or
                CSRF_TOKEN_INVALID
        """
        options = options or SecurityValidationOptions()

        # HTTPS is only enforced where production traffic is served
        if options.require_secure_transport and self.config.is_production:
            if not request.is_https:
                logger.warning("Rejected insecure transport for %s %s", request.method, request.path)
                raise SecurityError(
                    "HTTPS required for authentication endpoints",
                    SecurityErrorCode.INSECURE_TRANSPORT
                )

        if options.validate_origin:
            if not self.origin_guard.validate_origin(request, options.allowed_origins):
                logger.warning("Rejected origin %r for %s", OriginGuard.request_origin(request), request.path)
                raise SecurityError("Request origin not allowed", SecurityErrorCode.ORIGIN_NOT_ALLOWED)

        if options.require_csrf and request.method in SecurityConstants.STATE_CHANGING_METHODS:
            csrf_token = (request.header(SecurityConstants.CSRF_HEADER_NAME)
                          or request.query_param(SecurityConstants.CSRF_QUERY_PARAM))
            expected_token = request.cookie(SecurityConstants.CSRF_COOKIE_NAME)

            if not csrf_token or not expected_token or \
                    not self.csrf_service.validate_token(csrf_token, expected_token):
                logger.warning("Rejected missing or invalid CSRF token for %s %s", request.method, request.path)
                raise SecurityError("Invalid or missing CSRF token", SecurityErrorCode.CSRF_TOKEN_INVALID)

    def sanitize_input(self, raw, options: Optional[SecurityValidationOptions] = None) -> str:
        """Sanitize a request field using the options' input length limit."""
        options = options or SecurityValidationOptions()
        return self.input_validator.sanitize_input(raw, max_length=options.max_input_length)

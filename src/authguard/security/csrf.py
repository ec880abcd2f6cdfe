"""
CSRF token issuance and timing-safe verification.
"""

import hmac
import re
import secrets
from typing import Optional

from authguard.config.settings import SecurityConstants


_HEX_PATTERN = re.compile(r'[0-9a-fA-F]+')


class CSRFTokenService:
    """Issues hex-encoded random tokens and compares them in constant time."""

    def __init__(self, token_length: int = SecurityConstants.CSRF_TOKEN_LENGTH):
        self.token_length = token_length

    def generate_token(self, length: Optional[int] = None) -> str:
        """
        Generate a cryptographically secure token.

        Args:
            length: Number of random bytes; the hex string is twice as long
        """
        return secrets.token_hex(self.token_length if length is None else length)

    @staticmethod
    def validate_token(provided: str, expected: str) -> bool:
        """
        Compare a client-supplied token with the expected one.

        Empty values, length mismatches and malformed hex are rejected
        before any comparison; this never raises.
        """
        if not provided or not expected:
            return False

        if not isinstance(provided, str) or not isinstance(expected, str):
            return False

        if len(provided) != len(expected):
            return False

        # bytes.fromhex skips whitespace, so check the alphabet first
        if not _HEX_PATTERN.fullmatch(provided) or not _HEX_PATTERN.fullmatch(expected):
            return False

        try:
            provided_bytes = bytes.fromhex(provided)
            expected_bytes = bytes.fromhex(expected)
        except ValueError:
            return False

        if len(provided_bytes) != len(expected_bytes):
            return False

        return hmac.compare_digest(provided_bytes, expected_bytes)

    @staticmethod
    def build_csrf_cookie(token: str, secure: bool = True) -> str:
        """
        ``Set-Cookie`` value for issuing a token.

        Not HttpOnly: the page script reads the cookie and echoes it in the
        ``x-csrf-token`` header (double-submit).
        """
        cookie = f"{SecurityConstants.CSRF_COOKIE_NAME}={token}; Path=/; SameSite=Strict"
        if secure:
            cookie += "; Secure"
        return cookie


csrf_service = CSRFTokenService()


def generate_csrf_token() -> str:
    return csrf_service.generate_token()


def validate_csrf_token(provided: str, expected: str) -> bool:
    return CSRFTokenService.validate_token(provided, expected)

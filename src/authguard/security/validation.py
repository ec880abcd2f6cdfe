"""
Input validation and sanitization for authentication endpoints.
Protects against injection, open redirects and spoofed client addresses.
"""

import hashlib
import ipaddress
import re
from typing import Iterable, Optional, Sequence
from urllib.parse import urlsplit, urlunsplit

from authguard.config.settings import settings, Settings, SecurityConstants
from authguard.core.models import APIRequest
from authguard.utils.exceptions import ValidationError, SecurityError, SecurityErrorCode


_DEFAULT_PORTS = {'http': 80, 'https': 443}
_SCHEME_PATTERN = re.compile(r'^[a-zA-Z][a-zA-Z0-9+.-]*:')


def origin_matches(origin: str, allowed_origins: Iterable[str]) -> bool:
    """Exact match, or ``origin`` is a subdomain of an allowed entry."""
    return any(origin == allowed or origin.endswith('.' + allowed) for allowed in allowed_origins)


def url_origin(url: str) -> Optional[str]:
    """Return ``scheme://host[:port]`` for an absolute URL, or None."""
    try:
        parts = urlsplit(url)
        port = parts.port
    except ValueError:
        return None
    if not parts.scheme or not parts.hostname:
        return None
    scheme = parts.scheme.lower()
    host = parts.hostname
    if ':' in host:
        host = f"[{host}]"
    origin = f"{scheme}://{host}"
    if port is not None and port != _DEFAULT_PORTS.get(scheme):
        origin += f":{port}"
    return origin


def is_valid_ip(value: str) -> bool:
    """Validate IPv4 or IPv6 address syntax."""
    try:
        ipaddress.ip_address(value)
    except ValueError:
        return False
    return True


def generate_secure_hash(data: str) -> str:
    """SHA-256 hex digest, for logging sensitive values without storing them."""
    return hashlib.sha256(data.encode()).hexdigest()


class InputValidator:
    """
    Sanitizes caller-supplied strings and validates redirect targets and
    client addresses.
    """

    def __init__(self, max_input_length: int = SecurityConstants.MAX_INPUT_LENGTH,
                 max_url_length: int = SecurityConstants.MAX_URL_LENGTH,
                 config: Settings = settings):
        self.max_input_length = max_input_length
        self.max_url_length = max_url_length
        self.config = config

        # Compile regex patterns for performance
        self.dangerous_chars_pattern = re.compile(r'[<>&"\'/\\]')
        self.redirect_dangerous_chars_pattern = re.compile(r'[<>"\'\\]')
        self.control_chars_pattern = re.compile(r'[\x00-\x1f\x7f-\x9f]')

    def sanitize_input(self, raw, max_length: Optional[int] = None) -> str:
        """
        Strip HTML/script metacharacters and control characters, then trim.

        Applying it to its own output returns the same string.

        Raises:
            ValidationError: If the input is not a string or is too long
        """
        limit = self.max_input_length if max_length is None else max_length

        if not isinstance(raw, str):
            raise ValidationError("Input must be a string")

        if len(raw) > limit:
            raise ValidationError(f"Input length exceeds maximum of {limit} characters")

        sanitized = self.dangerous_chars_pattern.sub('', raw)
        sanitized = self.control_chars_pattern.sub('', sanitized)
        return sanitized.strip()

    def validate_redirect_url(self, url, allowed_origins: Optional[Sequence[str]] = None) -> str:
        """
        Validate a redirect target against scheme and origin rules.

        Only relative paths and http(s) URLs are accepted: any other scheme,
        ``mailto:`` and ``ftp:`` included, raises ``ValidationError``.

        Args:
            url: Redirect target supplied by the client
            allowed_origins: Origins absolute URLs must match (exactly or as a
                subdomain); empty means any http(s) origin

        Returns:
            The sanitized relative URL, or the normalized absolute URL

        Raises:
            ValidationError: For unsafe or malformed URLs
        """
        allowed_origins = list(allowed_origins or [])

        if not url or not isinstance(url, str):
            raise ValidationError("Redirect URL must be a non-empty string", "redirect_url")

        if len(url) > self.max_url_length:
            raise ValidationError(
                f"URL length exceeds maximum of {self.max_url_length} characters", "redirect_url"
            )

        # Browsers ignore leading whitespace and control characters in a scheme
        candidate = self.control_chars_pattern.sub('', url).strip()
        if candidate.lower().startswith(SecurityConstants.DANGEROUS_SCHEMES):
            raise ValidationError("Unsafe URL scheme detected", "redirect_url")

        # Protocol-relative URLs leave the current origin; browsers read '\' as '/'
        if candidate.replace('\\', '/').startswith('//'):
            return self._validate_absolute_url('https:' + candidate.replace('\\', '/'), allowed_origins)

        if not _SCHEME_PATTERN.match(candidate):
            sanitized = self.redirect_dangerous_chars_pattern.sub('', url)
            sanitized = self.control_chars_pattern.sub('', sanitized).strip()
            # Stripping characters can expose '//host' or a scheme
            if sanitized.startswith('//') or _SCHEME_PATTERN.match(sanitized):
                return self.validate_redirect_url(sanitized, allowed_origins)
            return sanitized

        return self._validate_absolute_url(candidate, allowed_origins)

    def _validate_absolute_url(self, url: str, allowed_origins: Sequence[str]) -> str:
        try:
            parts = urlsplit(url)
        except ValueError:
            raise ValidationError("Invalid URL format", "redirect_url")

        if parts.scheme.lower() not in _DEFAULT_PORTS:
            raise ValidationError("Unsafe URL scheme detected", "redirect_url")

        origin = url_origin(url)
        if origin is None:
            raise ValidationError("Invalid URL format", "redirect_url")

        if allowed_origins and not origin_matches(origin, allowed_origins):
            raise ValidationError("Redirect URL origin not allowed", "redirect_url")

        return urlunsplit((
            parts.scheme.lower(),
            parts.netloc.lower(),
            parts.path or '/',
            parts.query,
            parts.fragment,
        ))

    def get_client_ip(self, request: APIRequest) -> str:
        """
        Extract the client IP, considering proxy headers in priority order.

        The first header whose leftmost comma-separated value is a valid
        address wins; otherwise the connection address, otherwise the
        loopback fallback.
        """
        if self.config.trust_proxy_headers:
            for header in SecurityConstants.CLIENT_IP_HEADERS:
                value = request.header(header)
                if value:
                    # x-forwarded-for can carry a chain; the client is leftmost
                    ip = value.split(',')[0].strip()
                    if is_valid_ip(ip):
                        return ip

        if request.source_ip and is_valid_ip(request.source_ip):
            return request.source_ip

        return SecurityConstants.FALLBACK_CLIENT_IP

    def generate_rate_limit_key(self, request: APIRequest, kind: str = 'ip',
                                identifier: Optional[str] = None) -> str:
        """Build a rate-limit key scoped by IP, user or endpoint."""
        client_ip = self.get_client_ip(request)

        if kind == 'ip':
            return f"ip:{client_ip}"
        if kind == 'user':
            return f"user:{identifier or 'anonymous'}:{client_ip}"
        if kind == 'endpoint':
            return f"endpoint:{request.path}:{client_ip}"
        return f"general:{client_ip}"


def validate_auth_method(request: APIRequest, allowed_methods: Sequence[str] = ('POST',)) -> None:
    """Reject methods an authentication endpoint does not accept."""
    if request.method not in {method.upper() for method in allowed_methods}:
        raise SecurityError(
            f"Method {request.method} not allowed for authentication endpoints",
            SecurityErrorCode.METHOD_NOT_ALLOWED
        )


# Default instance for module-level helpers
input_validator = InputValidator()


def sanitize_input(raw) -> str:
    return input_validator.sanitize_input(raw)


def validate_redirect_url(url, allowed_origins: Optional[Sequence[str]] = None) -> str:
    return input_validator.validate_redirect_url(url, allowed_origins)


def get_client_ip(request: APIRequest) -> str:
    return input_validator.get_client_ip(request)


def generate_rate_limit_key(request: APIRequest, kind: str = 'ip', identifier: Optional[str] = None) -> str:
    return input_validator.generate_rate_limit_key(request, kind, identifier)

"""
Origin/Referer checks and response security headers.
"""

from typing import Dict, Iterable, Mapping, Optional

from authguard.config.settings import SecurityConstants
from authguard.core.models import APIRequest
from authguard.security.validation import origin_matches, url_origin


class OriginGuard:
    """CSRF mitigation for browser contexts based on the request origin."""

    @staticmethod
    def request_origin(request: APIRequest) -> Optional[str]:
        """Origin header, else the Referer's origin."""
        origin = request.header('origin')
        if origin:
            return origin
        referer = request.header('referer')
        if referer:
            return url_origin(referer)
        return None

    @classmethod
    def validate_origin(cls, request: APIRequest, allowed_origins: Iterable[str]) -> bool:
        """
        Check the effective origin against the allow-list.

        Requests with neither Origin nor Referer are non-browser clients and
        pass; an unparseable Referer fails.
        """
        if not request.header('origin') and not request.header('referer'):
            return True

        request_origin = cls.request_origin(request)
        if not request_origin:
            return False

        return origin_matches(request_origin, allowed_origins)


def _has_header(headers: Mapping[str, str], name: str) -> bool:
    name = name.lower()
    return any(key.lower() == name for key in headers)


def add_security_headers(headers: Dict[str, str],
                         additional_headers: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
    """
    Add the canonical security headers that are not already present.

    ``additional_headers`` are always set, overriding existing values.
    """
    for key, value in SecurityConstants.SECURITY_HEADERS.items():
        if not _has_header(headers, key):
            headers[key] = value

    if additional_headers:
        headers.update(additional_headers)

    return headers


def validate_origin(request: APIRequest, allowed_origins: Iterable[str]) -> bool:
    return OriginGuard.validate_origin(request, allowed_origins)

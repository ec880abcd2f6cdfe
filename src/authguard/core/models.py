"""
Request and rate-limit data models with validation.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import parse_qs, urlencode, urlsplit

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from authguard.config.settings import SecurityConstants


def _parse_cookie_header(raw: str) -> Dict[str, str]:
    cookies = {}
    for part in raw.split(';'):
        name, sep, value = part.strip().partition('=')
        if sep and name:
            cookies.setdefault(name, value.strip().strip('"'))
    return cookies


class APIRequest(BaseModel):
    """
    Framework-neutral view of one incoming request.

    Header names are stored lower-cased so lookups are case-insensitive.
    ``locals`` carries request-scoped values set by upstream code, such as
    the authenticated ``user``.
    """

    method: str = Field("GET", max_length=16)
    url: str = Field("http://localhost/")
    headers: Dict[str, str] = Field(default_factory=dict)
    cookies: Dict[str, str] = Field(default_factory=dict)
    locals: Dict[str, Any] = Field(default_factory=dict)
    source_ip: Optional[str] = None

    @field_validator('method', mode='before')
    @classmethod
    def normalize_method(cls, v):
        return str(v or 'GET').upper()

    @field_validator('headers', mode='before')
    @classmethod
    def lowercase_headers(cls, v):
        if not v:
            return {}
        return {str(key).lower(): str(value) for key, value in dict(v).items() if value is not None}

    @model_validator(mode='after')
    def cookies_from_header(self):
        if not self.cookies and 'cookie' in self.headers:
            self.cookies = _parse_cookie_header(self.headers['cookie'])
        return self

    @classmethod
    def from_lambda_event(cls, event: Dict[str, Any]) -> "APIRequest":
        """Build a request from an API Gateway proxy event (payload v1 or v2)."""
        headers = {str(k).lower(): str(v) for k, v in (event.get('headers') or {}).items() if v is not None}
        request_context = event.get('requestContext') or {}

        if 'rawPath' in event or event.get('version') == '2.0':
            http = request_context.get('http') or {}
            method = http.get('method', 'GET')
            path = event.get('rawPath') or '/'
            query = event.get('rawQueryString') or ''
            source_ip = http.get('sourceIp')
            cookie_list = event.get('cookies') or []
            cookies = _parse_cookie_header('; '.join(cookie_list)) if cookie_list else {}
        else:
            method = event.get('httpMethod', 'GET')
            path = event.get('path') or '/'
            params = event.get('queryStringParameters') or {}
            query = urlencode({key: value for key, value in params.items() if value is not None})
            source_ip = (request_context.get('identity') or {}).get('sourceIp')
            cookies = {}

        proto = (headers.get('x-forwarded-proto') or 'http').split(',')[0].strip().lower()
        scheme = 'https' if proto == 'https' else 'http'
        host = headers.get('host') or 'localhost'
        url = f"{scheme}://{host}{path}" + (f"?{query}" if query else '')

        return cls(
            method=method,
            url=url,
            headers=headers,
            cookies=cookies,
            source_ip=source_ip,
        )

    def header(self, name: str) -> Optional[str]:
        return self.headers.get(name.lower())

    def cookie(self, name: str) -> Optional[str]:
        return self.cookies.get(name)

    def query_param(self, name: str) -> Optional[str]:
        values = parse_qs(urlsplit(self.url).query).get(name)
        return values[0] if values else None

    @property
    def path(self) -> str:
        return urlsplit(self.url).path or '/'

    @property
    def is_https(self) -> bool:
        """True when served over HTTPS directly or behind a TLS-terminating proxy."""
        if self.url.lower().startswith('https://'):
            return True
        return 'https' in (self.header('x-forwarded-proto') or '').lower()


class RateLimitConfig(BaseModel):
    """Limits for one class of endpoint."""

    model_config = ConfigDict(frozen=True)

    window_seconds: float = Field(SecurityConstants.DEFAULT_RATE_WINDOW_SECONDS, gt=0)
    max_requests: int = Field(SecurityConstants.DEFAULT_RATE_LIMIT, ge=1)
    # A caller may clear the counter after a successful authentication
    skip_successful_requests: bool = False
    key_generator: Optional[Callable[[APIRequest], str]] = None
    on_limit_reached: Optional[Callable[..., Any]] = None


@dataclass
class RateLimitEntry:
    """One fixed window for one key. ``reset_time`` never changes once set."""

    count: int
    reset_time: float
    first_request: float

    def is_expired(self, now: float) -> bool:
        return now > self.reset_time


class RateLimitResult(BaseModel):
    """Verdict for a single counted request."""

    success: bool
    limit: int = Field(..., ge=1)
    remaining: int = Field(..., ge=0)
    reset_time: float
    retry_after: Optional[int] = None

    def reset_iso(self) -> str:
        """Window reset as an ISO-8601 UTC timestamp with millisecond precision."""
        reset = datetime.fromtimestamp(self.reset_time, tz=timezone.utc)
        return reset.isoformat(timespec='milliseconds').replace('+00:00', 'Z')


class SecurityValidationOptions(BaseModel):
    """Which request checks ``SecurityContextValidator`` applies."""

    model_config = ConfigDict(extra='forbid')

    require_csrf: bool = False
    validate_origin: bool = False
    allowed_origins: List[str] = Field(default_factory=list)
    max_input_length: int = Field(SecurityConstants.MAX_INPUT_LENGTH, ge=1)
    require_secure_transport: bool = False

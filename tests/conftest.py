"""
Shared fixtures: a controllable clock, isolated stores and request builders.
"""

from __future__ import annotations

import pytest

from authguard.core.models import APIRequest
from authguard.security.rate_limiting import InMemoryRateLimitStore, RateLimiter


class FakeClock:
    """Manually advanced stand-in for time.time()."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(clock):
    store = InMemoryRateLimitStore(clock=clock, start_sweeper=False)
    yield store
    store.close()


@pytest.fixture
def limiter(store) -> RateLimiter:
    return RateLimiter(store)


@pytest.fixture
def make_request():
    def _make(method: str = "GET", url: str = "https://auth.example.com/handler/signin",
              headers: dict = None, cookies: dict = None, **kwargs) -> APIRequest:
        return APIRequest(method=method, url=url, headers=headers or {}, cookies=cookies or {}, **kwargs)
    return _make


@pytest.fixture
def make_event():
    """API Gateway proxy event, payload format 1.0."""
    def _make(method: str = "GET", path: str = "/handler/signin", headers: dict = None,
              query: dict = None, source_ip: str = "203.0.113.10") -> dict:
        return {
            "httpMethod": method,
            "path": path,
            "headers": {"Host": "auth.example.com", "X-Forwarded-Proto": "https", **(headers or {})},
            "queryStringParameters": query,
            "requestContext": {"requestId": "req-1", "identity": {"sourceIp": source_ip}},
        }
    return _make

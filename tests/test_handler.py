"""End-to-end tests for the secured Lambda handler."""

from __future__ import annotations

import json

from authguard.config.settings import SecurityConstants
from authguard.handler import handler, lambda_handler
from authguard.security.csrf import generate_csrf_token


def test_get_issues_csrf_cookie(make_event):
    response = lambda_handler(make_event(source_ip="192.0.2.1"), None)

    assert response['statusCode'] == 501
    assert response['headers']['Set-Cookie'].startswith(f"{SecurityConstants.CSRF_COOKIE_NAME}=")
    assert response['headers']['Set-Cookie'].endswith("Secure")
    assert response['headers']['X-Content-Type-Options'] == 'nosniff'
    assert response['headers']['X-RateLimit-Limit'] == '20'
    assert 'X-Request-ID' in response['headers']

    body = json.loads(response['body'])
    assert body['details']['path'] == 'signin'
    assert body['details']['method'] == 'GET'
    assert '/handler/signin' in body['setup_guidance']['expected_endpoints']


def test_get_with_cookie_does_not_reissue(make_event):
    event = make_event(source_ip="192.0.2.2", headers={
        "Cookie": f"{SecurityConstants.CSRF_COOKIE_NAME}={generate_csrf_token()}"
    })
    response = handler(event, None)

    assert response['statusCode'] == 501
    assert 'Set-Cookie' not in response['headers']


def test_post_without_csrf_token_is_forbidden(make_event):
    response = lambda_handler(make_event(method="POST", source_ip="192.0.2.3"), None)

    assert response['statusCode'] == 403
    assert json.loads(response['body'])['error_code'] == "CSRF_TOKEN_INVALID"


def test_post_with_matching_csrf_token(make_event):
    token = generate_csrf_token()
    event = make_event(method="POST", path="/handler/signout", source_ip="192.0.2.4", headers={
        "Cookie": f"{SecurityConstants.CSRF_COOKIE_NAME}={token}",
        "X-CSRF-Token": token,
    })

    response = lambda_handler(event, None)

    assert response['statusCode'] == 501
    assert json.loads(response['body'])['details']['path'] == 'signout'

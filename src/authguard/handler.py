"""
Secured AWS Lambda handler for authentication endpoints.

Until the identity provider integration is wired in, every route answers
501 with setup guidance, behind the full security pipeline.
"""

import json
from datetime import datetime, timezone

from authguard.config.settings import settings, SecurityConstants
from authguard.core.models import APIRequest, SecurityValidationOptions
from authguard.security.csrf import CSRFTokenService
from authguard.security.middleware import SecurityMiddleware
from authguard.security.rate_limiting import RATE_LIMIT_CONFIGS


EXPECTED_ENDPOINTS = [
    '/handler/signin',
    '/handler/callback',
    '/handler/signout',
    '/handler/user',
    '/handler/session'
]

csrf_service = CSRFTokenService()

security_middleware = SecurityMiddleware(
    rate_limit_config=RATE_LIMIT_CONFIGS['AUTH_ENDPOINTS'],
    validation_options=SecurityValidationOptions(
        require_csrf=True,
        validate_origin=bool(settings.allowed_origins),
        allowed_origins=settings.allowed_origins,
        require_secure_transport=True
    )
)


@security_middleware.secure_handler
def lambda_handler(request: APIRequest, context):
    """
    Authentication endpoint stub.

    The security middleware has already:
    - Checked transport, origin and CSRF token
    - Applied rate limiting
    and will add security headers to the response.
    """
    path = request.path
    auth_path = path.split('/handler/', 1)[1] if '/handler/' in path else path.lstrip('/')

    headers = {
        'Content-Type': 'application/json',
        'Cache-Control': 'no-cache, no-store, must-revalidate'
    }

    # Issue a CSRF token to browsers that do not have one yet
    if request.method == 'GET' and not request.cookie(SecurityConstants.CSRF_COOKIE_NAME):
        token = csrf_service.generate_token()
        headers['Set-Cookie'] = csrf_service.build_csrf_cookie(token, secure=request.is_https)

    return {
        'statusCode': 501,
        'headers': headers,
        'body': json.dumps({
            'error': 'Not Implemented',
            'message': 'Authentication integration is not yet fully implemented',
            'details': {
                'path': auth_path,
                'method': request.method,
                'timestamp': datetime.now(timezone.utc).isoformat(),
                'status': 'stub_implementation'
            },
            'setup_guidance': {
                'expected_endpoints': EXPECTED_ENDPOINTS
            }
        })
    }


def lambda_cleanup():
    """Clean up resources when Lambda container is being destroyed."""
    security_middleware.close()


# For backwards compatibility and testing
def handler(event, context):
    """Alias for lambda_handler for compatibility."""
    return lambda_handler(event, context)

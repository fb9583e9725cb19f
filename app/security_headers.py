"""
Security Headers Middleware for FastAPI

Adds security headers to every JSON API response:
- X-Frame-Options / frame-ancestors: the API is never framed
- X-Content-Type-Options: Prevents MIME type sniffing
- Referrer-Policy: Controls referrer information leakage
- Content-Security-Policy: Nothing to load from an API response
- Strict-Transport-Security: Enforces HTTPS (production only)
- Permissions-Policy: Controls browser features
- Cache-Control: Prevents caching of wallet and account data
"""

import logging
import os
from typing import Callable, Optional

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

logger = logging.getLogger(__name__)

IS_PRODUCTION = os.getenv("ENVIRONMENT", "development").lower() == "production"


def get_csp_policy() -> str:
    directives = [
        "default-src 'none'",
        "frame-ancestors 'none'",
        "base-uri 'none'",
        "form-action 'none'",
    ]
    return "; ".join(directives)


def get_permissions_policy() -> str:
    features = [
        "accelerometer=()",
        "geolocation=()",
        "gyroscope=()",
        "magnetometer=()",
        "payment=()",
        "usb=()",
        "interest-cohort=()",
    ]
    return ", ".join(features)


def get_security_headers_dict() -> dict:
    headers = {
        "X-Frame-Options": "DENY",
        "X-Content-Type-Options": "nosniff",
        "Referrer-Policy": "strict-origin-when-cross-origin",
        "Content-Security-Policy": get_csp_policy(),
        "Permissions-Policy": get_permissions_policy(),
        "X-Permitted-Cross-Domain-Policies": "none",
    }
    if IS_PRODUCTION:
        headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains; preload"
    return headers


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Middleware that adds security headers to all responses.

    Paths in ``exclude_paths`` (health checks) are returned untouched.
    Cache-Control is only set when the route did not set one itself.
    """

    def __init__(self, app, exclude_paths: Optional[list[str]] = None):
        super().__init__(app)
        self.exclude_paths = exclude_paths or []

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)

        path = request.url.path
        if any(path.startswith(excluded) for excluded in self.exclude_paths):
            return response

        for name, value in get_security_headers_dict().items():
            response.headers[name] = value

        if "Cache-Control" not in response.headers:
            response.headers["Cache-Control"] = "no-store, no-cache, must-revalidate"

        return response

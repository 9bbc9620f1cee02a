"""
Security Headers Middleware for the JSON API

Every response carries anti-sniffing, framing and referrer headers, a CSP that
allows nothing to load, and no-store caching. HSTS is added in production only.
"""

import logging
from typing import Callable, Optional

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from . import config

logger = logging.getLogger(__name__)

# The API only ever returns JSON
API_CSP = "default-src 'none'; frame-ancestors 'none'; base-uri 'none'; form-action 'none'"

PERMISSIONS_POLICY = ", ".join(
    [
        "accelerometer=()",
        "camera=()",
        "geolocation=()",
        "gyroscope=()",
        "microphone=()",
        "payment=()",
        "usb=()",
    ]
)


def get_security_headers(is_production: bool = False) -> dict:
    headers = {
        "X-Frame-Options": "DENY",
        "X-Content-Type-Options": "nosniff",
        "Referrer-Policy": "strict-origin-when-cross-origin",
        "Content-Security-Policy": API_CSP,
        "Permissions-Policy": PERMISSIONS_POLICY,
        "X-Permitted-Cross-Domain-Policies": "none",
    }
    if is_production:
        headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains; preload"
    return headers


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Adds the headers from `get_security_headers` to every non-excluded response"""

    def __init__(
        self,
        app,
        exclude_paths: Optional[list[str]] = None,
        is_production: Optional[bool] = None,
    ):
        super().__init__(app)
        self.exclude_paths = exclude_paths or []
        self.headers = get_security_headers(
            config.IS_PRODUCTION if is_production is None else is_production
        )

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)

        # Skip security headers for excluded paths (e.g., health checks)
        path = request.url.path
        if any(path.startswith(excluded) for excluded in self.exclude_paths):
            return response

        for name, value in self.headers.items():
            response.headers[name] = value

        # Session-scoped balances and subscriptions must never be cached
        if "Cache-Control" not in response.headers:
            response.headers["Cache-Control"] = "no-store"

        return response

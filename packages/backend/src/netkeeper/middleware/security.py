"""Security headers middleware.

Responses carry admin tokens and access key values, so nothing may be
cached by browsers or intermediaries (Cache-Control and Pragma for
HTTP/1.0 proxies), and no referrer leaks the key paths.

HSTS is sent only when the client connection is HTTPS. Behind a TLS
terminating proxy that is the X-Forwarded-Proto header, not the scheme
the server itself sees.
"""

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

HSTS = "max-age=31536000; includeSubDomains"

NO_STORE_HEADERS = {
    "Cache-Control": "no-store",
    "Pragma": "no-cache",
}


def _is_https(request: Request) -> bool:
    forwarded = request.headers.get("X-Forwarded-Proto", "")
    return request.url.scheme == "https" or forwarded.split(",")[0].strip() == "https"


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security and no-store headers to all responses."""

    async def dispatch(self, request: Request, call_next) -> Response:
        response: Response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "no-referrer"
        response.headers.update(NO_STORE_HEADERS)
        if _is_https(request):
            response.headers["Strict-Transport-Security"] = HSTS
        return response

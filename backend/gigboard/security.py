"""
HTTP hardening for the Gigboard API.

- Rate limiting (IP-based using slowapi)
- Security headers + request ID middleware
- Request size validation
- Exception handlers that keep internals out of responses

Configuration via environment variables:
- RATE_LIMIT_PER_MINUTE: Requests per minute per IP (default: 100)
- MAX_REQUEST_SIZE_MB: Maximum request body size in MB (default: 2)
- TRUSTED_PROXY_COUNT: Proxies appending to X-Forwarded-For (default: 1)
- ENVIRONMENT: 'production' or 'development' (affects error detail exposure)
"""

import ipaddress
import logging
import os
import time
import uuid
from typing import Callable

from fastapi import FastAPI, HTTPException, Request, Response
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from gigboard.deps import status_for
from gigboard.exceptions import GigboardError

logger = logging.getLogger(__name__)

# =============================================================================
# Configuration
# =============================================================================

RATE_LIMIT_PER_MINUTE = int(os.getenv("RATE_LIMIT_PER_MINUTE", "100"))
DEFAULT_RATE_LIMIT = f"{RATE_LIMIT_PER_MINUTE}/minute"

MAX_REQUEST_SIZE_MB = int(os.getenv("MAX_REQUEST_SIZE_MB", "2"))
MAX_REQUEST_SIZE_BYTES = MAX_REQUEST_SIZE_MB * 1024 * 1024

ENVIRONMENT = os.getenv("ENVIRONMENT", "development")
IS_PRODUCTION = ENVIRONMENT.lower() == "production"

TRUSTED_PROXY_COUNT = int(os.getenv("TRUSTED_PROXY_COUNT", "1"))


# =============================================================================
# Rate Limiter Setup
# =============================================================================

def _is_valid_ip(ip_str: str) -> bool:
    if not ip_str or len(ip_str) > 45:  # Max length for IPv6
        return False
    try:
        ipaddress.ip_address(ip_str)
        return True
    except ValueError:
        return False


def get_client_ip(request: Request) -> str:
    """
    Client IP using the rightmost non-trusted X-Forwarded-For entry.

    Entries to the right were appended by our own proxies; anything further
    left may be client-supplied.  Falls back to X-Real-IP and then to the
    direct peer address.
    """
    direct_ip = request.client.host if request.client else None

    if forwarded_for := request.headers.get("X-Forwarded-For"):
        if ips := [ip.strip() for ip in forwarded_for.split(",") if ip.strip()]:
            if len(ips) > TRUSTED_PROXY_COUNT:
                client_ip = ips[-(TRUSTED_PROXY_COUNT + 1)]
            else:
                client_ip = ips[0]
            if _is_valid_ip(client_ip):
                return client_ip
            logger.warning("Invalid IP in X-Forwarded-For header: %r", client_ip[:50])

    if real_ip := request.headers.get("X-Real-IP"):
        real_ip = real_ip.strip()
        if _is_valid_ip(real_ip):
            return real_ip
        logger.warning("Invalid X-Real-IP header: %r", real_ip[:50])

    return direct_ip if direct_ip and _is_valid_ip(direct_ip) else "unknown"


limiter = Limiter(
    key_func=get_client_ip,
    default_limits=[DEFAULT_RATE_LIMIT],
    storage_uri="memory://",
    strategy="fixed-window",
)

# Stricter limit for administrative quota operations
SENSITIVE_RATE_LIMIT = "10/minute"


def rate_limit_sensitive():
    """Decorator for sensitive endpoints with stricter rate limiting."""
    return limiter.limit(SENSITIVE_RATE_LIMIT)


# =============================================================================
# Middleware
# =============================================================================

class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Adds security headers and an X-Request-ID, and logs request duration."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id
        start = time.time()

        response = await call_next(request)

        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        if IS_PRODUCTION:
            response.headers["Strict-Transport-Security"] = (
                "max-age=31536000; includeSubDomains"
            )
        response.headers["X-Request-ID"] = request_id
        if not response.headers.get("Cache-Control"):
            response.headers["Cache-Control"] = "no-store, private"

        logger.info(
            "Request completed: %s %s status=%s duration=%.3fs request_id=%s client_ip=%s",
            request.method,
            request.url.path,
            response.status_code,
            time.time() - start,
            request_id,
            get_client_ip(request),
        )
        return response


class RequestSizeLimitMiddleware(BaseHTTPMiddleware):
    """Rejects bodies larger than MAX_REQUEST_SIZE_MB before they are read."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if content_length := request.headers.get("content-length"):
            try:
                size = int(content_length)
            except ValueError:
                return JSONResponse(
                    status_code=400,
                    content={
                        "detail": "Invalid Content-Length header",
                        "code": "INVALID_CONTENT_LENGTH",
                    },
                )
            if size > MAX_REQUEST_SIZE_BYTES:
                return JSONResponse(
                    status_code=413,
                    content={
                        "detail": f"Request body too large. Maximum size is {MAX_REQUEST_SIZE_MB}MB.",
                        "code": "REQUEST_TOO_LARGE",
                    },
                )
        return await call_next(request)


# =============================================================================
# Exception Handlers
# =============================================================================

def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", str(uuid.uuid4()))


def create_domain_exception_handler() -> Callable:
    """Map a domain exception that escaped a router to its HTTP status."""

    async def domain_exception_handler(
        request: Request, exc: GigboardError
    ) -> JSONResponse:
        request_id = _request_id(request)
        return JSONResponse(
            status_code=status_for(exc),
            content={"detail": exc.to_dict(), "request_id": request_id},
            headers={"X-Request-ID": request_id},
        )

    return domain_exception_handler


def create_secure_exception_handler() -> Callable:
    """Return generic 500s in production, full detail in development."""

    async def secure_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        request_id = _request_id(request)
        logger.error(
            "Unhandled exception: %s: %s request_id=%s path=%s method=%s",
            type(exc).__name__,
            exc,
            request_id,
            request.url.path,
            request.method,
            exc_info=True,
        )
        if IS_PRODUCTION:
            content = {
                "detail": "An internal server error occurred. Please try again later.",
                "code": "INTERNAL_ERROR",
                "request_id": request_id,
            }
        else:
            content = {
                "detail": str(exc),
                "error_type": type(exc).__name__,
                "request_id": request_id,
            }
        return JSONResponse(
            status_code=500, content=content, headers={"X-Request-ID": request_id}
        )

    return secure_exception_handler


def create_rate_limit_exceeded_handler() -> Callable:
    async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
        request_id = _request_id(request)
        logger.warning(
            "Rate limit exceeded: client_ip=%s path=%s request_id=%s",
            get_client_ip(request),
            request.url.path,
            request_id,
        )
        return JSONResponse(
            status_code=429,
            content={
                "detail": "Rate limit exceeded. Please slow down your requests.",
                "code": "RATE_LIMIT_EXCEEDED",
                "retry_after_seconds": 60,
                "request_id": request_id,
            },
            headers={"X-Request-ID": request_id, "Retry-After": "60"},
        )

    return rate_limit_handler


def create_http_exception_handler() -> Callable:
    async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
        request_id = _request_id(request)
        if exc.status_code in (401, 403):
            logger.warning(
                "Access denied (%s): client_ip=%s path=%s request_id=%s",
                exc.status_code,
                get_client_ip(request),
                request.url.path,
                request_id,
            )
        headers = {"X-Request-ID": request_id, **(exc.headers or {})}
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail, "request_id": request_id},
            headers=headers,
        )

    return http_exception_handler


# =============================================================================
# Security Setup Function
# =============================================================================

def setup_security(app: FastAPI) -> None:
    """Configure rate limiting, hardening middleware and exception handlers."""
    app.state.limiter = limiter

    app.add_middleware(SlowAPIMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestSizeLimitMiddleware)

    app.add_exception_handler(RateLimitExceeded, create_rate_limit_exceeded_handler())
    app.add_exception_handler(GigboardError, create_domain_exception_handler())
    app.add_exception_handler(HTTPException, create_http_exception_handler())
    app.add_exception_handler(Exception, create_secure_exception_handler())

    logger.info(
        "Security middleware configured: rate_limit=%d/min, max_request_size=%dMB, environment=%s",
        RATE_LIMIT_PER_MINUTE,
        MAX_REQUEST_SIZE_MB,
        ENVIRONMENT,
    )

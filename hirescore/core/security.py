"""Rate limiting, response hardening and request audit logging."""

import logging
import time
import uuid
from typing import Callable

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)

# Paths that are polled constantly and not worth an audit line
QUIET_PATHS = frozenset({"/", "/health", "/favicon.ico"})

REQUEST_ID_HEADER = "X-Request-ID"


def get_user_or_ip(request: Request) -> str:
    """
    Rate limit key: the account id once auth has run, else the client IP.

    The auth dependency sets request.state.user_id, so limits on
    authenticated routes follow the account across addresses.
    """
    user_id = getattr(request.state, "user_id", None)
    if user_id:
        return f"user:{user_id}"
    return get_remote_address(request)


limiter = Limiter(key_func=get_user_or_ip)


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Too many calls to a limited route, reported in the API's error shape."""
    logger.warning(f"Rate limit hit by {get_user_or_ip(request)} on {request.url.path}: {exc.detail}")
    return JSONResponse(
        status_code=429,
        content={
            "detail": {
                "error": "too_many_requests",
                "message": f"Too many requests ({exc.detail}). Please slow down.",
            }
        },
    )


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Adds conservative security headers; this is a JSON-only API."""

    HEADERS = {
        "X-Content-Type-Options": "nosniff",
        "X-Frame-Options": "DENY",
        "Referrer-Policy": "strict-origin-when-cross-origin",
        "Content-Security-Policy": "default-src 'none'; frame-ancestors 'none'",
        "Cache-Control": "no-store",
    }

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)
        for name, value in self.HEADERS.items():
            response.headers.setdefault(name, value)
        return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    One audit line per request.

    Each request gets an id (taken from X-Request-ID when the caller sends
    one) that is echoed back in the response. Bodies are never logged:
    resumes, interview answers and chat prompts stay out of the logs.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex[:16]
        request.state.request_id = request_id
        started = time.perf_counter()

        response = await call_next(request)

        response.headers[REQUEST_ID_HEADER] = request_id
        path = request.url.path
        if path in QUIET_PATHS:
            return response

        elapsed_ms = round((time.perf_counter() - started) * 1000, 2)
        account = getattr(request.state, "user_id", None) or "anonymous"
        line = (
            f"{request_id} {request.method} {path} -> {response.status_code} "
            f"in {elapsed_ms}ms account={account} ip={client_ip(request)}"
        )

        if response.status_code >= 500:
            logger.error(line)
        elif response.status_code in (402, 429):
            # Quota and rate refusals
            logger.info(line)
        elif response.status_code >= 400:
            logger.warning(line)
        else:
            logger.info(line)

        return response


def client_ip(request: Request) -> str:
    """Client address, preferring the first hop of proxy headers."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip

    return request.client.host if request.client else "unknown"

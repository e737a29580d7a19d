"""
Custom middleware for request/response handling and monitoring
"""
import time
import uuid
import logging
from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from core.config import settings
from core.exceptions import RateLimitError
from core.response import error_response

logger = logging.getLogger(__name__)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Middleware to log all requests and responses"""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        # Generate unique request ID
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id

        # Log request
        start_time = time.time()
        logger.info(
            f"Request {request_id}: {request.method} {request.url} - "
            f"Client: {request.client.host if request.client else 'unknown'}"
        )

        # Process request
        try:
            response = await call_next(request)

            # Calculate processing time
            process_time = time.time() - start_time

            # Log response
            logger.info(
                f"Response {request_id}: {response.status_code} - "
                f"Time: {process_time:.3f}s"
            )

            # Add request ID to response headers
            response.headers["X-Request-ID"] = request_id
            response.headers["X-Process-Time"] = f"{process_time:.3f}"

            return response

        except Exception as e:
            process_time = time.time() - start_time
            logger.error(
                f"Request {request_id} failed: {str(e)} - "
                f"Time: {process_time:.3f}s"
            )
            raise


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses"""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        response = await call_next(request)

        # Add security headers
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-XSS-Protection"] = "1; mode=block"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Permissions-Policy"] = (
            "geolocation=(), microphone=(), camera=(), "
            "payment=(), usb=(), magnetometer=(), gyroscope=()"
        )

        return response


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Sliding-window rate limiting per client address"""

    def __init__(self, app, calls: int = 100, period: int = 60, enabled: bool = True):
        super().__init__(app)
        self.calls = calls
        self.period = period
        self.enabled = enabled
        self.clients = {}

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if not self.enabled:
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        current_time = time.time()

        # Clean old entries
        self.clients = {
            ip: calls for ip, calls in self.clients.items()
            if current_time - calls[-1] < self.period
        }

        # Check rate limit
        calls = [
            call_time for call_time in self.clients.get(client_ip, [])
            if current_time - call_time < self.period
        ]

        if len(calls) >= self.calls:
            logger.warning(f"Rate limit exceeded for {client_ip}")
            exc = RateLimitError(details={"limit": self.calls, "period_seconds": self.period})
            return JSONResponse(
                status_code=exc.status_code,
                content=error_response(
                    message=exc.message,
                    error_code=exc.__class__.__name__,
                    details=exc.details
                )
            )

        calls.append(current_time)
        self.clients[client_ip] = calls

        return await call_next(request)


def rate_limit_options() -> dict:
    return {
        "calls": settings.RATE_LIMIT_CALLS,
        "period": settings.RATE_LIMIT_PERIOD,
        "enabled": settings.RATE_LIMIT_ENABLED,
    }

import time
import uuid
from typing import Callable, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from url2img.core.config import settings
from url2img.core.logging import get_logger


logger = get_logger("middleware")

# Headers set by proxies and load balancers, in order of preference
FORWARDED_IP_HEADERS = [
    "x-forwarded-for",      # Can contain "client, proxy1, proxy2"
    "x-real-ip",            # Nginx and other proxies
    "cf-connecting-ip",     # Cloudflare
]


def get_real_client_ip(request: Request) -> Optional[str]:
    """Extract the client IP, honouring proxy headers when they are trusted.

    Args:
        request: The FastAPI request object

    Returns:
        The client IP address or None if unknown
    """
    if settings.trust_proxy_headers:
        for header_name in FORWARDED_IP_HEADERS:
            header_value = request.headers.get(header_name)
            if not header_value:
                continue
            # The leftmost entry is the original client
            client_ip = header_value.split(",")[0].strip()
            if client_ip and client_ip != "unknown":
                return client_ip

    return request.client.host if request.client else None


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Middleware for logging request and response details."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Process the request and log details.

        Args:
            request: The incoming request
            call_next: The next middleware or route handler

        Returns:
            The response
        """
        # Generate a unique request ID
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id

        start_time = time.time()
        request_log = logger.bind(request_id=request_id, client=get_real_client_ip(request))

        # Image responses are never logged, only JSON request bodies when enabled
        if settings.log_request_body and request.headers.get("content-type", "").startswith("application/json"):
            body = await request.body()
            if body:
                request_log.debug(f"Request body: {body.decode('utf-8', errors='replace')}")

        request_log.info(f"Request received: {request.method} {request.url.path}")

        try:
            response = await call_next(request)
        except Exception:
            duration = time.time() - start_time
            request_log.exception(f"Request failed: {request.method} {request.url.path} ({duration:.3f}s)")
            raise

        duration = time.time() - start_time
        log_level = "error" if response.status_code >= 500 else \
                   "warning" if response.status_code >= 400 else "info"
        getattr(request_log, log_level)(
            f"Response sent: {response.status_code} {request.method} {request.url.path} ({duration:.3f}s)"
        )

        # Add request ID to response headers
        response.headers["X-Request-ID"] = request_id

        return response

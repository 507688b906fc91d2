"""
Request/response logging middleware for tracking API interactions.
"""
import logging
import time
import uuid
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
from typing import Callable

from app.core.logging_config import request_id_context

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Middleware to log incoming requests and outgoing responses.

    Logs method, path, client host, status code and duration. A request ID is
    taken from the X-Request-ID header (or generated), stored in
    request_id_context for the duration of the request, and echoed on the
    response.
    """

    def __init__(self, app, slow_request_threshold: float = 1.0):
        """
        Initialize request logging middleware.

        Args:
            app: FastAPI application
            slow_request_threshold: Seconds after which a successful request is
                logged at WARNING instead of INFO
        """
        super().__init__(app)
        self.slow_request_threshold = slow_request_threshold

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """
        Process request and log details.

        Args:
            request: Incoming request
            call_next: Next middleware/endpoint in chain

        Returns:
            Response from the endpoint
        """
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        token = request_id_context.set(request_id)

        start_time = time.perf_counter()

        method = request.method
        path = str(request.url.path)
        client_host = request.client.host if request.client else "unknown"

        logger.debug(
            "Incoming request",
            extra={"method": method, "path": path, "client_host": client_host},
        )

        try:
            response = await call_next(request)

            duration_ms = round((time.perf_counter() - start_time) * 1000, 2)
            status_code = response.status_code

            response.headers[REQUEST_ID_HEADER] = request_id

            extra_fields = {
                "method": method,
                "path": path,
                "status_code": status_code,
                "duration_ms": duration_ms,
                "client_host": client_host,
            }

            if status_code >= 500:
                logger.error("Server error response", extra=extra_fields)
            elif status_code >= 400:
                logger.warning("Client error response", extra=extra_fields)
            elif duration_ms >= self.slow_request_threshold * 1000:
                logger.warning("Slow request", extra=extra_fields)
            else:
                logger.info("Request completed", extra=extra_fields)

            return response
        finally:
            request_id_context.reset(token)

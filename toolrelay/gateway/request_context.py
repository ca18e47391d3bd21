# Toolrelay - OpenAI-Compatible Tool-Calling Gateway
# Copyright (c) 2026 George Scott Foley
# ORCID: 0009-0006-4957-0540
# Email: Georgescottfoley@proton.me
# Licensed under the MIT License - see LICENSE file for details

"""
Request Context Middleware

Provides request ID propagation and request metrics:
- Generates or accepts X-Request-ID header
- Propagates request ID through structured logging
- Records HTTP request count and latency

Usage:
    app.add_middleware(RequestContextMiddleware)

    # In route handlers
    request_id = request.state.request_id
"""

import logging
import secrets
import time
from collections.abc import Callable

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from ..observability.logging import clear_request_context, log_request_end, set_request_context

logger = logging.getLogger(__name__)


class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    Middleware for request ID propagation.

    Features:
    - Generates unique request ID or uses X-Request-ID header
    - Sets logging context variables for the request lifecycle
    - Adds X-Request-ID to response headers
    - Logs request end with timing
    """

    def __init__(
        self,
        app,
        header_name: str = "X-Request-ID",
        generate_id: Callable[[], str] | None = None,
        log_requests: bool = True,
    ):
        super().__init__(app)
        self.header_name = header_name
        self.generate_id = generate_id or (lambda: secrets.token_hex(16))
        self.log_requests = log_requests

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        """Process request with context management."""
        request_id = self._sanitize_request_id(
            request.headers.get(self.header_name) or self.generate_id()
        )
        start = time.perf_counter()

        set_request_context(request_id=request_id, user_id=request.headers.get("user-id"))
        request.state.request_id = request_id

        try:
            response = await call_next(request)
            duration = time.perf_counter() - start
            response.headers[self.header_name] = request_id

            if self.log_requests:
                log_request_end(
                    request.method, request.url.path, response.status_code, duration * 1000
                )

            container = getattr(request.app.state, "container", None)
            if container is not None:
                route = request.scope.get("route")
                endpoint = getattr(route, "path", None) or "unmatched"
                container.metrics.record_http_request(
                    request.method, endpoint, response.status_code, duration
                )

            return response

        except Exception as e:
            logger.error(
                f"Request failed: {request.method} {request.url.path} error={type(e).__name__}",
                exc_info=True,
            )
            raise

        finally:
            clear_request_context()

    def _sanitize_request_id(self, request_id: str) -> str:
        """
        Sanitize request ID to prevent log injection.

        - Limit length
        - Allow only alphanumeric, dashes and underscores
        """
        sanitized = "".join(c for c in request_id[:64] if c.isalnum() or c in "-_")
        return sanitized or self.generate_id()


__all__ = ["RequestContextMiddleware"]

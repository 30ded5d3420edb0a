"""Request context middleware for correlation ID propagation.

Every request gets a correlation ID, taken from the ``X-Correlation-ID``
header when the caller sends one. The ID is stored in a context variable,
bound to every log record emitted while the request is processed, and echoed
back in the response headers.

Procedure resolvers and error hooks can read it with
``RequestContext.get_correlation_id()``.
"""

from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from restrpc.api.constants import CORRELATION_ID_HEADER
from restrpc.core.context import RequestContext, generate_correlation_id


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Middleware to manage request context and correlation IDs.

    This middleware:
    - Generates or extracts correlation IDs
    - Sets them in contextvars for propagation
    - Binds them to Loguru for structured logging
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        """Process the request with context management.

        Args:
            request: The incoming request.
            call_next: The next middleware/endpoint.

        Returns:
            Response: Response with correlation ID header.
        """
        correlation_id = (
            request.headers.get(CORRELATION_ID_HEADER) or generate_correlation_id()
        )
        RequestContext.set_correlation_id(correlation_id)

        # contextualize drops the ID once the request is done
        with logger.contextualize(correlation_id=correlation_id):
            response = await call_next(request)
            response.headers[CORRELATION_ID_HEADER] = correlation_id
            return response

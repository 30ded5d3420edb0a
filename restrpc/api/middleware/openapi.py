"""Procedure dispatch as middleware.

Requests matching a procedure route are answered by the dispatch pipeline;
every other request continues to the wrapped application, so procedures can
live next to ordinary FastAPI routes.
"""

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from restrpc.api.handler import OpenApiHttpHandler


class OpenApiMiddleware(BaseHTTPMiddleware):
    """Serve procedure routes in front of an application.

    Args:
        app: The ASGI application to wrap.
        handler: The dispatch pipeline serving the router.
    """

    def __init__(self, app: ASGIApp, *, handler: OpenApiHttpHandler) -> None:
        super().__init__(app)
        self.handler = handler

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        """Dispatch the request to a procedure, or to the wrapped application.

        Args:
            request: The incoming request.
            call_next: The next middleware/endpoint.

        Returns:
            Response: The procedure or application response.
        """
        return await self.handler.handle(request, call_next)

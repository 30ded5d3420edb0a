"""FastAPI application factory.

``create_app`` serves a procedure router next to ordinary FastAPI routes:

- Procedure routes are answered by ``OpenApiMiddleware``
- The generated OpenAPI document is served at ``openapi_url``
- A health check is served at ``health_url``

FastAPI's own documentation endpoints are disabled, since they would describe
the FastAPI routes only.

Middleware are executed in reverse order of registration, so the last
middleware added is the first to process requests.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI
from loguru import logger

from restrpc.api.handler import (
    ContextFactory,
    ErrorHook,
    OpenApiHttpHandler,
    ResponseMetaHook,
)
from restrpc.api.middleware.openapi import OpenApiMiddleware
from restrpc.api.middleware.request_context import RequestContextMiddleware
from restrpc.api.middleware.request_logging import RequestLoggingMiddleware
from restrpc.api.utils.responses import ORJSONResponse
from restrpc.core.config import Settings, get_settings
from restrpc.core.logging import setup_logging
from restrpc.core.types import OpenApiObject
from restrpc.openapi.generator import GenerateOpenApiDocumentOptions, generate_openapi_document
from restrpc.procedures.procedure import Router


@asynccontextmanager
async def lifespan(app_instance: FastAPI) -> AsyncGenerator[None]:
    """Manage application lifespan events.

    Args:
        app_instance: The FastAPI application instance.

    Yields:
        None: Nothing is yielded, this is just a lifespan context.
    """
    logger.info(
        "Application startup complete - {} v{}",
        app_instance.title,
        app_instance.version,
    )

    yield

    logger.info("Application shutdown complete")


def get_document_options(settings: Settings) -> GenerateOpenApiDocumentOptions:
    """Build document options from settings, defaulting to the app name and version."""
    config = settings.openapi_config
    return GenerateOpenApiDocumentOptions(
        title=config.title or settings.app_name,
        version=config.version or settings.app_version,
        base_url=config.base_url,
        description=config.description,
        openapi_version=config.openapi_version,
        docs_url=config.docs_url,
        tags=config.tags,
        coerce_scalars=settings.handler_config.coerce_scalars,
    )


def create_app(
    settings: Settings | None = None,
    *,
    router: Router | None = None,
    create_context: ContextFactory | None = None,
    response_meta: ResponseMetaHook | None = None,
    on_error: ErrorHook | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Optional settings instance. If not provided, will use get_settings().
        router: The router to serve. Defaults to the router named by
            ``settings.router``.
        create_context: Builds the context passed to resolvers.
        response_meta: Chooses the status and headers of procedure responses.
        on_error: Called with every procedure failure.

    Returns:
        FastAPI: Configured FastAPI application instance.

    Raises:
        RouterDefinitionError: If the router cannot be served or documented.
    """
    if settings is None:
        settings = get_settings()

    # Setup logging first
    setup_logging(settings)

    served: Router = router if router is not None else (settings.router or {})

    handler = OpenApiHttpHandler.from_config(
        served,
        settings.handler_config,
        create_context=create_context,
        response_meta=response_meta,
        on_error=on_error,
    )

    application = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        debug=settings.debug,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
        default_response_class=ORJSONResponse,
        lifespan=lifespan,
    )

    # 3. Procedure dispatch (innermost, falls through to the routes below)
    application.add_middleware(OpenApiMiddleware, handler=handler)

    # 2. Request logging middleware (logs requests/responses)
    application.add_middleware(
        RequestLoggingMiddleware,
        log_config=settings.log_config,
        trust_proxy_headers=settings.environment == "production",
    )

    # 1. Request context middleware (creates correlation ID)
    application.add_middleware(RequestContextMiddleware)

    if settings.openapi_url is not None:
        document = generate_openapi_document(served, get_document_options(settings))

        @application.get(settings.openapi_url, include_in_schema=False)
        async def openapi() -> OpenApiObject:
            """Serve the generated OpenAPI document.

            Returns:
                OpenApiObject: The document describing the procedure routes.
            """
            return document

    if settings.health_url is not None:

        @application.get(settings.health_url, include_in_schema=False)
        async def health() -> dict[str, Any]:
            """Health check endpoint for monitoring and container orchestration.

            Returns:
                dict[str, Any]: Status, application name and version.
            """
            return {
                "status": "healthy",
                "app_name": settings.app_name,
                "version": settings.app_version,
            }

    return application

"""HTTP layer serving procedures over REST with Starlette/FastAPI.

This package turns a procedure router into HTTP endpoints and an OpenAPI
document.

Key components:
- **handler**: The dispatch pipeline, usable as a standalone ASGI app
- **input**: Request body and query string gathering
- **main**: FastAPI application factory
- **middleware**: Cross-cutting concerns for all requests
  - Procedure dispatch with fall-through to FastAPI routes
  - Request context with correlation ID tracking
  - Structured request logging with timing
- **schemas**: Pydantic models of the error response format
- **utils**: orjson response rendering
"""

"""Middleware for cross-cutting request/response concerns.

- **OpenApiMiddleware**: Dispatches procedure routes, falls through otherwise
- **RequestContextMiddleware**: Manages correlation IDs and request context
- **RequestLoggingMiddleware**: Structured logging with performance tracking

Middleware are executed in a specific order to ensure proper request processing:
1. Request context (first to process, sets up correlation IDs)
2. Request logging (logs with correlation context)
3. Procedure dispatch (errors are rendered here, inside the correlation context)
"""

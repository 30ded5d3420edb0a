"""Core infrastructure package for shared functionality.

This package provides the foundational components used across all layers
of restrpc:

- **config**: Centralized configuration management with environment support
- **constants**: Shared HTTP and size constants
- **context**: Request context and correlation ID management
- **exceptions**: Closed error-code taxonomy and the structured RpcError
- **error_context**: Sensitive data sanitization for safe logging
- **logging**: Structured logging with Loguru
- **types**: Type aliases for better code clarity

These modules implement cross-cutting concerns that ensure consistency,
security, and observability throughout the package.
"""

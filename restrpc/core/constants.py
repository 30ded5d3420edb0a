"""Core constants shared by the routing, OpenAPI and API layers."""

from typing import Final

# Time constants
MILLISECONDS_PER_SECOND = 1000

# Security and redaction
REDACTED = "[REDACTED]"

# HTTP methods a procedure can be exposed on, in documentation order
OPENAPI_METHODS: Final[tuple[str, ...]] = ("GET", "POST", "PATCH", "PUT", "DELETE")

# Methods that never carry a request body
BODYLESS_METHODS: Final[frozenset[str]] = frozenset({"GET", "DELETE"})

# Content types
JSON_CONTENT_TYPE = "application/json"
FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"

# Request handling
DEFAULT_MAX_BODY_SIZE = 100_000  # bytes
DEFAULT_TAG = "default"

# OpenAPI
DEFAULT_OPENAPI_VERSION = "3.1.0"
DEFAULT_SECURITY_SCHEME_NAME = "Authorization"
SCHEMA_REF_PREFIX = "#/components/schemas/"

"""Type aliases for dynamic data structures throughout the package.

This module centralizes type definitions for data that cannot be statically
typed, providing clear semantic meaning for these types.

All JSON types defined here are serializable with orjson so they can flow into
responses, documents and structured logs unchanged.
"""

from collections.abc import Awaitable
from typing import Any

# JSON-compatible type that represents any valid JSON value
type JsonValue = (
    dict[str, "JsonValue"] | list["JsonValue"] | str | int | float | bool | None
)

# A fragment of the generated OpenAPI document (operation, schema, response...)
type OpenApiObject = dict[str, Any]

# Path parameters extracted by the route index, keyed by placeholder name
type PathParams = dict[str, str]

# Flattened query string: single values collapse to strings, repeats stay lists
type QueryInput = dict[str, str | list[str]]

# Response headers returned by the response-metadata hook
type HeaderMap = dict[str, str]

# Hooks may be written as plain functions or coroutines
type MaybeAwaitable[T] = T | Awaitable[T]

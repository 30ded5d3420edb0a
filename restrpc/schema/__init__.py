"""Schema introspection for pydantic input and output schemas.

This package never validates data; pydantic does. It only answers structural
questions about a schema:

- **shapes**: Classify a schema into a closed set of kinds after stripping
  wrapper layers (optional, default, nullable, lazy aliases, validators)
- **coercion**: Derive models whose scalar leaves accept string wire values
"""

"""Utility modules for API-specific functionality.

This package contains helper modules used across the API layer:
- **responses**: JSON response class rendering with orjson
"""

"""Mapping of HTTP requests to procedures.

Modules:
- **paths**: Path template parsing, compilation and normalization
- **index**: The per-method route index built once from a router
"""

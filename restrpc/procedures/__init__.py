"""Procedure engine: definitions, router trees, metadata and invocation.

Modules:
- **procedure**: ``Procedure``, the fluent ``procedure`` builder and ``router`` trees
- **meta**: ``OpenApiMeta`` and the default/declared metadata merge policy
- **caller**: Input validation, resolver invocation and output serialization
"""

"""restrpc - typed remote procedure calls served over REST-style HTTP.

restrpc turns a tree of typed procedures into a conventional HTTP API and derives
an OpenAPI 3.1 document from the very same definition.

Architecture Overview:
- **Procedures Layer**: Procedure builder, router tree and metadata defaults
- **Schema Layer**: Shape classification of pydantic schemas and scalar coercion
- **Routing Layer**: Path templates compiled into a method-scoped route index
- **OpenAPI Layer**: Static document generation without invoking procedures
- **API Layer**: Request dispatch pipeline, middleware and the FastAPI application
- **Core Layer**: Configuration, error taxonomy, logging and shared utilities

Key Features:
- **Single source of truth**: One router drives both dispatch and documentation
- **Type safety**: pydantic validates every input and output
- **Deterministic routing**: Declaration order decides between overlapping paths
- **Fail fast**: An invalid router aborts startup instead of serving a partial API
- **Observability**: Structured logging with correlation IDs on every request
"""

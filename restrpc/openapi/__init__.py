"""OpenAPI 3.1 description of procedure routers.

Modules:
- **generator**: Document assembly and its options
- **paths**: One operation per procedure, with definition checks
- **schema**: JSON schemas, parameters, bodies, responses and components
"""

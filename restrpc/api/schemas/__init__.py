"""Pydantic models of the wire formats shared by the handler and the OpenAPI document."""

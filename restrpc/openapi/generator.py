"""OpenAPI document generation.

``generate_openapi_document`` describes a router without invoking any
procedure. The same function validates routers: the dispatch handler calls it
at construction time (outside production) so that a misconfigured procedure
fails at startup instead of at the first request.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from loguru import logger

from restrpc.core.constants import DEFAULT_OPENAPI_VERSION, DEFAULT_SECURITY_SCHEME_NAME
from restrpc.core.types import OpenApiObject
from restrpc.openapi.paths import ProcedureFilter, get_openapi_paths_object, merge_paths
from restrpc.openapi.schema import SchemaRegistry
from restrpc.procedures.procedure import Router


def default_security_schemes() -> dict[str, OpenApiObject]:
    """Bearer token authentication under the ``Authorization`` scheme name."""
    return {DEFAULT_SECURITY_SCHEME_NAME: {"type": "http", "scheme": "bearer"}}


@dataclass(frozen=True, slots=True)
class GenerateOpenApiDocumentOptions:
    """Document-level settings.

    Attributes:
        title: ``info.title``.
        version: ``info.version``.
        base_url: URL of the single advertised server.
        description: ``info.description``.
        openapi_version: Version of the OpenAPI specification.
        docs_url: URL of external documentation.
        tags: Top-level tag names.
        security_schemes: ``components.securitySchemes``; protected procedures
            require every scheme listed here.
        paths: Extra path items merged over the generated ones.
        filter: Called with each procedure's metadata; return False to leave
            the procedure out of the document.
        defs: Extra pydantic schemas published under ``components.schemas``.
        coerce_scalars: Whether query and path keys may be numbers, booleans
            and dates read from strings.
    """

    title: str
    version: str
    base_url: str
    description: str | None = None
    openapi_version: str = DEFAULT_OPENAPI_VERSION
    docs_url: str | None = None
    tags: list[str] | None = None
    security_schemes: dict[str, OpenApiObject] = field(default_factory=default_security_schemes)
    paths: Mapping[str, OpenApiObject] | None = None
    filter: ProcedureFilter | None = None
    defs: Mapping[str, Any] | None = None
    coerce_scalars: bool = True


def generate_openapi_document(
    router: Router, options: GenerateOpenApiDocumentOptions
) -> OpenApiObject:
    """Generate the OpenAPI document of a router.

    Args:
        router: The router to describe.
        options: Document-level settings.

    Returns:
        OpenApiObject: The document, ready to be serialized as JSON.

    Raises:
        RouterDefinitionError: For the first procedure that cannot be described.
    """
    registry = SchemaRegistry(options.defs)
    generated = get_openapi_paths_object(
        router,
        list(options.security_schemes),
        registry,
        procedure_filter=options.filter,
        coerce_scalars=options.coerce_scalars,
    )

    info: OpenApiObject = {"title": options.title, "version": options.version}
    if options.description is not None:
        info["description"] = options.description

    components: OpenApiObject = {"securitySchemes": dict(options.security_schemes)}
    if registry.schemas:
        components["schemas"] = registry.schemas

    document: OpenApiObject = {
        "openapi": options.openapi_version,
        "info": info,
        "servers": [{"url": options.base_url}],
        "paths": merge_paths(generated, options.paths) or {},
        "components": components,
    }
    if options.tags is not None:
        document["tags"] = [{"name": tag} for tag in options.tags]
    if options.docs_url:
        document["externalDocs"] = {"url": options.docs_url}

    logger.debug(
        "Generated OpenAPI document with {} paths and {} component schemas",
        len(document["paths"]),
        len(registry.schemas),
    )
    return document

"""Paths object of the OpenAPI document.

One operation is generated per enabled procedure. Generation validates the
procedure definition along the way and stops at the first invalid procedure
with a ``RouterDefinitionError`` naming it (``[query.users.get] - ...``).
"""

from collections.abc import Callable, Mapping, Sequence
from typing import Any

from restrpc.core.constants import BODYLESS_METHODS, JSON_CONTENT_TYPE
from restrpc.core.exceptions import RouterDefinitionError
from restrpc.core.types import OpenApiObject
from restrpc.openapi.schema import (
    SchemaRegistry,
    get_header_parameter_objects,
    get_parameter_objects,
    get_request_body_object,
    get_responses_object,
)
from restrpc.procedures.caller import is_pydantic_schema
from restrpc.procedures.meta import OpenApiProcedure, iter_openapi_procedures
from restrpc.procedures.procedure import Procedure, ProcedureKind, Router
from restrpc.routing.index import get_route_method
from restrpc.routing.paths import get_path_parameters, normalize_path
from restrpc.schema.shapes import is_object_like, is_void_like, unwrap

type ProcedureFilter = Callable[[Mapping[str, Any]], bool]


def has_inputs(proc: Procedure) -> bool:
    """Whether a procedure declares an input that is not void."""
    return proc.has_inputs_defined and not is_void_like(
        unwrap(proc.input_schema, unwrap_transforms=True)
    )


def _get_request_data(
    entry: OpenApiProcedure,
    registry: SchemaRegistry,
    path_parameters: Sequence[str],
    content_types: Sequence[str],
    *,
    coerce_scalars: bool,
) -> OpenApiObject:
    proc = entry.procedure
    method = entry.openapi.method
    request_data: OpenApiObject = {}
    parameters: list[OpenApiObject] = []

    if proc.has_inputs_defined:
        if not is_pydantic_schema(proc.input_schema):
            raise RouterDefinitionError("Input parser expects a pydantic schema")

        input_schema = unwrap(proc.input_schema, unwrap_transforms=True)
        if path_parameters or not is_void_like(input_schema):
            if not is_object_like(input_schema):
                raise RouterDefinitionError("Input parser must be an object model")

            model_schema = registry.resolve(registry.json_schema(input_schema))
            use_body = method not in BODYLESS_METHODS
            parameters.extend(
                get_parameter_objects(
                    input_schema,
                    model_schema,
                    path_parameters,
                    "path" if use_body else "all",
                    coerce_scalars=coerce_scalars,
                )
            )
            if use_body:
                request_body = get_request_body_object(
                    model_schema, path_parameters, content_types
                )
                if request_body is not None:
                    request_data["requestBody"] = request_body

    if entry.openapi.request_headers is not None:
        parameters.extend(get_header_parameter_objects(registry, entry.openapi.request_headers))
    if parameters:
        request_data["parameters"] = parameters
    return request_data


def get_operation_object(
    entry: OpenApiProcedure,
    registry: SchemaRegistry,
    security_scheme_names: Sequence[str],
    *,
    coerce_scalars: bool,
) -> OpenApiObject:
    """Describe one procedure as an OpenAPI operation.

    Args:
        entry: Procedure with its effective metadata.
        registry: Component registry of the document being generated.
        security_scheme_names: Names of the document's security schemes.
        coerce_scalars: Whether numbers, booleans and dates may be read from strings.

    Returns:
        OpenApiObject: The operation object.

    Raises:
        RouterDefinitionError: If the procedure cannot be described.
    """
    openapi = entry.openapi
    path_parameters = get_path_parameters(normalize_path(openapi.path or ""))

    content_types = openapi.content_types if openapi.content_types is not None else [
        JSON_CONTENT_TYPE
    ]
    if not content_types:
        raise RouterDefinitionError("At least one content type must be specified")

    request_data = _get_request_data(
        entry, registry, path_parameters, content_types, coerce_scalars=coerce_scalars
    )

    proc = entry.procedure
    output = proc.output
    if output is not None and not (is_void_like(output) or is_pydantic_schema(output)):
        output = None
    responses = get_responses_object(
        registry,
        output=output,
        method=openapi.method or "",
        response_headers=openapi.response_headers,
        protect=openapi.protect,
        has_inputs=has_inputs(proc),
        success_description=openapi.success_description,
        error_responses=openapi.error_responses,
    )

    operation: OpenApiObject = {
        "operationId": openapi.operation_id or entry.path.replace(".", "-"),
    }
    if openapi.summary is not None:
        operation["summary"] = openapi.summary
    if openapi.description is not None:
        operation["description"] = openapi.description
    if openapi.tags is not None:
        operation["tags"] = list(openapi.tags)
    if openapi.protect:
        operation["security"] = [{name: []} for name in security_scheme_names]
    operation.update(request_data)
    operation["responses"] = responses
    if openapi.deprecated:
        operation["deprecated"] = True
    return operation


def get_openapi_paths_object(
    router: Router,
    security_scheme_names: Sequence[str],
    registry: SchemaRegistry,
    *,
    procedure_filter: ProcedureFilter | None = None,
    coerce_scalars: bool = True,
) -> dict[str, OpenApiObject]:
    """Describe every enabled procedure of a router.

    Args:
        router: The router to describe.
        security_scheme_names: Names of the document's security schemes.
        registry: Component registry of the document being generated.
        procedure_filter: Called with each procedure's metadata; procedures for
            which it returns False are left out.
        coerce_scalars: Whether numbers, booleans and dates may be read from strings.

    Returns:
        dict[str, OpenApiObject]: Path items keyed by normalized path.

    Raises:
        RouterDefinitionError: For the first procedure that cannot be described.
    """
    paths: dict[str, OpenApiObject] = {}

    for entry in iter_openapi_procedures(router):
        if procedure_filter is not None and not procedure_filter(entry.metadata):
            continue

        try:
            if entry.kind is ProcedureKind.SUBSCRIPTION:
                raise RouterDefinitionError("Subscriptions are not supported by OpenAPI v3")

            method = get_route_method(entry)
            path = normalize_path(entry.openapi.path or "")
            http_method = method.lower()
            if http_method in paths.get(path, {}):
                msg = f"Duplicate procedure defined for route {method} {path}"
                raise RouterDefinitionError(msg)

            operation = get_operation_object(
                entry, registry, security_scheme_names, coerce_scalars=coerce_scalars
            )
        except RouterDefinitionError as error:
            raise error.with_prefix(entry.name) from error.cause

        paths.setdefault(path, {})[http_method] = operation

    return paths


def merge_paths(
    generated: Mapping[str, OpenApiObject] | None,
    extra: Mapping[str, OpenApiObject] | None,
) -> dict[str, OpenApiObject] | None:
    """Merge caller-supplied path items into generated ones.

    Path items are merged per path; on the same method the caller's operation
    wins.

    Args:
        generated: Generated path items.
        extra: Caller-supplied path items.

    Returns:
        dict[str, OpenApiObject] | None: The merged paths, or None if both are None.
    """
    if generated is None and extra is None:
        return None

    merged = {path: dict(item) for path, item in (generated or {}).items()}
    for path, item in (extra or {}).items():
        merged[path] = {**merged.get(path, {}), **item}
    return merged

"""JSON schemas, parameters, request bodies and responses of operations.

JSON schemas come from pydantic (``TypeAdapter.json_schema``). Nested model
definitions that pydantic emits under ``$defs`` are hoisted into the
document's ``components.schemas`` by ``SchemaRegistry``, which also owns the
shared ``error.<CODE>`` response components. A registry lives for exactly one
document.
"""

from collections.abc import Mapping, Sequence
from typing import Any, Final, Literal

from restrpc.api.schemas.errors import ErrorResponse
from restrpc.core.constants import JSON_CONTENT_TYPE, SCHEMA_REF_PREFIX
from restrpc.core.exceptions import (
    ERROR_CODE_HTTP_STATUS,
    ERROR_CODE_MESSAGE,
    HTTP_STATUS_ERROR_CODE,
    ErrorCode,
    RouterDefinitionError,
)
from restrpc.core.types import OpenApiObject
from restrpc.procedures.caller import get_type_adapter
from restrpc.schema.shapes import (
    SchemaKind,
    accepts_missing,
    describe,
    is_coercible_scalar,
    is_string_like,
    object_fields,
)

REF_TEMPLATE: Final[str] = SCHEMA_REF_PREFIX + "{model}"
SUCCESS_DESCRIPTION: Final[str] = "Successful response"
UNKNOWN_ERROR_MESSAGE: Final[str] = "Unknown error"
EMPTY_OBJECT_SCHEMA: Final[OpenApiObject] = {"type": "object", "properties": {}}

type ParameterLocation = Literal["all", "path"]


class SchemaRegistry:
    """Component schemas collected while generating one document.

    Args:
        definitions: Extra named schemas to publish as components.
    """

    def __init__(self, definitions: Mapping[str, Any] | None = None) -> None:
        self.schemas: dict[str, OpenApiObject] = {}
        self._error_responses: dict[ErrorCode, OpenApiObject] = {}
        for name, schema in (definitions or {}).items():
            self.schemas[name] = self.json_schema(schema)

    def json_schema(
        self,
        schema: Any,  # noqa: ANN401 - any pydantic schema
        mode: Literal["validation", "serialization"] = "validation",
    ) -> OpenApiObject:
        """Return the JSON schema of ``schema`` with its definitions hoisted.

        Args:
            schema: Any annotation pydantic understands.
            mode: Validation for inputs, serialization for outputs.

        Returns:
            OpenApiObject: The schema, referencing ``#/components/schemas/...``.
        """
        json_schema = get_type_adapter(schema).json_schema(mode=mode, ref_template=REF_TEMPLATE)
        for name, definition in json_schema.pop("$defs", {}).items():
            self.schemas.setdefault(name, definition)
        return json_schema

    def resolve(self, json_schema: OpenApiObject) -> OpenApiObject:
        """Follow a top-level component ``$ref`` (recursive models)."""
        ref = json_schema.get("$ref")
        if isinstance(ref, str) and ref.startswith(SCHEMA_REF_PREFIX):
            return self.schemas.get(ref.removeprefix(SCHEMA_REF_PREFIX), json_schema)
        return json_schema

    def error_response(self, code: ErrorCode, message: str) -> OpenApiObject:
        """Return the response object of an error code.

        The first message registered for a code is kept for the whole document.

        Args:
            code: Error code.
            message: Response description and example message.

        Returns:
            OpenApiObject: A response referencing the ``error.<CODE>`` component.
        """
        if code not in self._error_responses:
            component = f"error.{code}"
            schema = self.json_schema(ErrorResponse)
            schema.pop("examples", None)
            schema.update(
                {
                    "title": f"{message} error ({ERROR_CODE_HTTP_STATUS.get(code, 500)})",
                    "description": "The error information",
                    "examples": [{"code": str(code), "message": message, "issues": []}],
                }
            )
            schema["properties"]["message"]["examples"] = [message]
            schema["properties"]["code"]["examples"] = [str(code)]
            self.schemas[component] = schema
            self._error_responses[code] = {
                "description": message,
                "content": {
                    JSON_CONTENT_TYPE: {"schema": {"$ref": SCHEMA_REF_PREFIX + component}}
                },
            }
        return self._error_responses[code]


def _check_query_key(key: str, field: Any, coerce_scalars: bool) -> None:  # noqa: ANN401, FBT001
    if is_string_like(field):
        return
    if not coerce_scalars:
        msg = f'Input parser key: "{key}" must be a string'
        raise RouterDefinitionError(msg)
    if not is_coercible_scalar(field):
        msg = f'Input parser key: "{key}" must be a string, number, boolean or date'
        raise RouterDefinitionError(msg)


def get_parameter_objects(
    model: Any,  # noqa: ANN401 - object schema
    model_schema: OpenApiObject,
    path_parameters: Sequence[str],
    location: ParameterLocation,
    *,
    coerce_scalars: bool,
) -> list[OpenApiObject]:
    """Describe input fields carried in the path or the query string.

    Args:
        model: The unwrapped object input schema.
        model_schema: JSON schema of ``model``.
        path_parameters: Placeholder names of the path template.
        location: ``"path"`` for body methods, ``"all"`` otherwise.
        coerce_scalars: Whether numbers, booleans and dates may be read from strings.

    Returns:
        list[OpenApiObject]: Parameter objects in field order.

    Raises:
        RouterDefinitionError: If a placeholder is not an input key, a path
            parameter may be omitted, or a key cannot be read from a string.
    """
    fields = object_fields(model)
    for name in path_parameters:
        if name not in fields:
            msg = f'Input parser expects key from path: "{name}"'
            raise RouterDefinitionError(msg)

    properties = model_schema.get("properties", {})
    parameters: list[OpenApiObject] = []
    for key, field in fields.items():
        is_path_parameter = key in path_parameters
        if location == "path" and not is_path_parameter:
            continue

        _check_query_key(key, field, coerce_scalars)
        if is_path_parameter and accepts_missing(field):
            msg = f'Path parameter: "{key}" must not be optional'
            raise RouterDefinitionError(msg)

        parameter: OpenApiObject = {
            "name": key,
            "in": "path" if is_path_parameter else "query",
            "required": is_path_parameter or not accepts_missing(field),
            "schema": properties.get(key, {}),
        }
        if field.description:
            parameter["description"] = field.description
        parameters.append(parameter)

    return parameters


def get_header_parameter_objects(
    registry: SchemaRegistry, headers: Any  # noqa: ANN401 - header model
) -> list[OpenApiObject]:
    """Describe request headers declared by a header model."""
    properties = registry.json_schema(headers).get("properties", {})
    return [
        {
            "name": key,
            "in": "header",
            "required": not accepts_missing(field),
            "schema": properties.get(key, {}),
        }
        for key, field in object_fields(headers).items()
    ]


def get_request_body_object(
    model_schema: OpenApiObject,
    path_parameters: Sequence[str],
    content_types: Sequence[str],
) -> OpenApiObject | None:
    """Describe the request body of a body method.

    Path parameters are removed from the body schema. When the path carries
    parameters and nothing else is left, no body is documented.

    Args:
        model_schema: JSON schema of the object input.
        path_parameters: Placeholder names of the path template.
        content_types: Accepted body content types.

    Returns:
        OpenApiObject | None: The request body object, or None.
    """
    properties = {
        key: value
        for key, value in model_schema.get("properties", {}).items()
        if key not in path_parameters
    }
    if path_parameters and not properties:
        return None

    body_schema = {**model_schema, "properties": properties}
    required = [key for key in model_schema.get("required", []) if key not in path_parameters]
    if required:
        body_schema["required"] = required
    else:
        body_schema.pop("required", None)

    return {
        "required": True,
        "content": {content_type: {"schema": body_schema} for content_type in content_types},
    }


def get_success_schema(registry: SchemaRegistry, output: Any) -> OpenApiObject:  # noqa: ANN401
    """Return the JSON schema of a successful response body."""
    if output is None:
        return dict(EMPTY_OBJECT_SCHEMA)

    match describe(output).kind:
        case SchemaKind.VOID:
            return {}
        case SchemaKind.NEVER:
            return {"not": {}}
        case _:
            return registry.json_schema(output, mode="serialization")


def get_response_headers(registry: SchemaRegistry, headers: Any) -> OpenApiObject:  # noqa: ANN401
    """Describe response headers declared by a header model."""
    properties = registry.json_schema(headers, mode="serialization").get("properties", {})
    response_headers: OpenApiObject = {}
    for key, field in object_fields(headers).items():
        header: OpenApiObject = {"schema": properties.get(key, {})}
        if not accepts_missing(field):
            header["required"] = True
        if field.description:
            header["description"] = field.description
        response_headers[key] = header
    return response_headers


def _explicit_error_responses(
    registry: SchemaRegistry, error_responses: Sequence[int] | Mapping[int, str]
) -> OpenApiObject:
    responses: OpenApiObject = {}
    if isinstance(error_responses, Mapping):
        for status, message in error_responses.items():
            code = HTTP_STATUS_ERROR_CODE.get(status, ErrorCode.INTERNAL_SERVER_ERROR)
            responses[str(status)] = registry.error_response(code, message)
        return responses

    for status in error_responses:
        known_code = HTTP_STATUS_ERROR_CODE.get(status)
        message = ERROR_CODE_MESSAGE[known_code] if known_code else UNKNOWN_ERROR_MESSAGE
        responses[str(status)] = registry.error_response(
            known_code or ErrorCode.INTERNAL_SERVER_ERROR, message
        )
    return responses


def get_responses_object(
    registry: SchemaRegistry,
    *,
    output: Any,  # noqa: ANN401 - output schema
    method: str,
    response_headers: Any,  # noqa: ANN401 - header model
    protect: bool,
    has_inputs: bool,
    success_description: str | None,
    error_responses: Sequence[int] | Mapping[int, str] | None,
) -> OpenApiObject:
    """Describe the responses of an operation.

    Without explicit ``error_responses`` the documented errors are 401 and 403
    for protected procedures, 400 (and 404 unless POST) for procedures with
    input, and always 500.

    Returns:
        OpenApiObject: Responses keyed by status code.
    """
    success: OpenApiObject = {"description": success_description or SUCCESS_DESCRIPTION}
    if response_headers is not None:
        success["headers"] = get_response_headers(registry, response_headers)
    success["content"] = {JSON_CONTENT_TYPE: {"schema": get_success_schema(registry, output)}}

    responses: OpenApiObject = {"200": success}
    if error_responses is not None:
        responses.update(_explicit_error_responses(registry, error_responses))
        return responses

    if protect:
        responses["401"] = registry.error_response(
            ErrorCode.UNAUTHORIZED, "Authorization not provided"
        )
        responses["403"] = registry.error_response(ErrorCode.FORBIDDEN, "Insufficient access")
    if has_inputs:
        responses["400"] = registry.error_response(ErrorCode.BAD_REQUEST, "Invalid input data")
        if method != "POST":
            responses["404"] = registry.error_response(ErrorCode.NOT_FOUND, "Not found")
    responses["500"] = registry.error_response(
        ErrorCode.INTERNAL_SERVER_ERROR, "Internal server error"
    )
    return responses

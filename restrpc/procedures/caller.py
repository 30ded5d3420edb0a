"""Validated procedure invocation.

``call_procedure`` is the single entry point used by the dispatch pipeline:

1. Validate the raw input against the procedure's input schema
   (optionally through a derived model that coerces string scalars)
2. Call the resolver, awaiting it when it returns an awaitable
3. Validate the result against the output schema and dump it to JSON types

Validation failures are raised as ``RpcError`` with the pydantic
``ValidationError`` as cause: ``BAD_REQUEST`` for input, and
``INTERNAL_SERVER_ERROR`` for output since a resolver returning the wrong shape
is a server bug.
"""

import inspect
from dataclasses import dataclass
from functools import lru_cache
from typing import Any

from pydantic import PydanticUserError, TypeAdapter, ValidationError
from pydantic_core import to_jsonable_python

from restrpc.core.context import AbortSignal
from restrpc.core.exceptions import ErrorCode, RpcError
from restrpc.procedures.procedure import Procedure, ProcedureKind
from restrpc.schema.coercion import coerce_annotation
from restrpc.schema.shapes import is_object_like, unwrap

INPUT_VALIDATION_FAILED = "Input validation failed"
OUTPUT_VALIDATION_FAILED = "Output validation failed"


@dataclass(frozen=True, slots=True)
class CallInfo:
    """Per-request information handed to the context factory.

    Attributes:
        kind: Kind of the procedure being called.
        path: Dotted path of the procedure being called.
        signal: Fires when the request is aborted.
        url: The full request URL.
        accept: The ``accept`` request header, if any.
        content_type: The ``content-type`` request header, if any.
    """

    kind: ProcedureKind
    path: str
    signal: AbortSignal
    url: str
    accept: str | None = None
    content_type: str | None = None


@lru_cache(maxsize=512)
def _cached_type_adapter(schema: Any) -> TypeAdapter[Any]:  # noqa: ANN401
    return TypeAdapter(schema)


def get_type_adapter(schema: Any) -> TypeAdapter[Any]:  # noqa: ANN401 - schemas are arbitrary
    """Return a (cached when possible) TypeAdapter for a schema.

    Args:
        schema: Any annotation pydantic understands.

    Returns:
        TypeAdapter[Any]: Adapter validating against ``schema``.
    """
    try:
        hash(schema)
    except TypeError:
        # Annotated metadata is not always hashable
        return TypeAdapter(schema)
    return _cached_type_adapter(schema)


def is_pydantic_schema(schema: Any) -> bool:  # noqa: ANN401
    """Whether pydantic can build a validator for ``schema``."""
    try:
        get_type_adapter(schema)
    except (PydanticUserError, TypeError):
        return False
    return True


def get_input_validator(proc: Procedure, *, coerce_scalars: bool) -> TypeAdapter[Any] | None:
    """Return the adapter used to validate a procedure's input.

    Args:
        proc: The procedure.
        coerce_scalars: Whether object inputs should accept string scalars.

    Returns:
        TypeAdapter[Any] | None: The adapter, or None when no input was declared.
    """
    schema = proc.input_schema
    if schema is None:
        return None
    if coerce_scalars and is_object_like(unwrap(schema, unwrap_transforms=True)):
        schema = coerce_annotation(schema)
    return get_type_adapter(schema)


def validate_input(validator: TypeAdapter[Any] | None, raw_input: Any) -> Any:  # noqa: ANN401
    """Validate raw input, raising ``BAD_REQUEST`` on failure.

    Args:
        validator: Adapter from ``get_input_validator``; None passes input through.
        raw_input: Input gathered from the request.

    Returns:
        Any: The validated input.

    Raises:
        RpcError: BAD_REQUEST with the ValidationError as cause.
    """
    if validator is None:
        return raw_input
    try:
        return validator.validate_python(raw_input)
    except ValidationError as exc:
        raise RpcError(ErrorCode.BAD_REQUEST, INPUT_VALIDATION_FAILED, exc) from exc


def serialize_output(schema: Any, result: Any) -> Any:  # noqa: ANN401
    """Validate a resolver result and dump it to JSON-compatible data.

    Args:
        schema: The declared output schema, or None.
        result: What the resolver returned.

    Returns:
        Any: JSON-compatible data.

    Raises:
        RpcError: INTERNAL_SERVER_ERROR with the ValidationError as cause.
    """
    if schema is None:
        return to_jsonable_python(result)

    adapter = get_type_adapter(schema)
    try:
        validated = adapter.validate_python(result)
    except ValidationError as exc:
        raise RpcError(
            ErrorCode.INTERNAL_SERVER_ERROR, OUTPUT_VALIDATION_FAILED, exc
        ) from exc
    return adapter.dump_python(validated, mode="json")


async def call_procedure(
    proc: Procedure,
    ctx: Any,  # noqa: ANN401 - user-defined context
    raw_input: Any,  # noqa: ANN401
    *,
    coerce_scalars: bool = False,
) -> Any:  # noqa: ANN401
    """Validate input, run the resolver and serialize its output.

    Args:
        proc: The procedure to call.
        ctx: Context object produced by the context factory.
        raw_input: Input gathered from the request.
        coerce_scalars: Whether object inputs should accept string scalars.

    Returns:
        Any: JSON-compatible output.
    """
    data = validate_input(get_input_validator(proc, coerce_scalars=coerce_scalars), raw_input)

    result = proc.resolver(ctx, data)
    if inspect.isawaitable(result):
        result = await result

    return serialize_output(proc.output, result)

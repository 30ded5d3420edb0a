"""Shape classification of pydantic schemas.

A schema is anything pydantic can validate against: a ``BaseModel`` subclass,
a plain type (``str``, ``int``, ``datetime``), a parametrized generic
(``list[str]``, ``dict[str, int]``), ``Literal``/``Enum``, unions, ``Annotated``
types carrying validators, PEP 695 type aliases, ``None`` and ``Never``. Model
fields (``FieldInfo``) are schemas too, since they add optionality and defaults.

``describe`` maps one layer of a schema onto ``SchemaShape``, a tagged variant
over the closed ``SchemaKind`` enum. Everything else in this module is an
exhaustive match over that enum:

- ``unwrap`` strips wrapper layers until a terminal kind is reached
- ``is_void_like`` / ``is_object_like`` / ``is_array_like`` test the terminal kind
- ``is_string_like`` decides whether a value can travel in a path or query string
- ``is_coercible_scalar`` decides whether a string value can be coerced

All functions are total: unknown schemas classify as ``UNKNOWN`` and every
predicate answers ``False`` for them.
"""

import collections.abc
import datetime
import decimal
import enum
import types
import typing
import uuid
from copy import copy
from dataclasses import dataclass
from enum import StrEnum
from typing import Annotated, Any, Final, Literal, Never, NoReturn, TypeAliasType, Union

from pydantic import AfterValidator, AnyUrl, BaseModel, BeforeValidator, EmailStr
from pydantic import PlainValidator, WrapValidator
from pydantic.fields import FieldInfo


class SchemaKind(StrEnum):
    """Closed set of schema kinds."""

    # Wrappers
    OPTIONAL = "optional"
    DEFAULT = "default"
    NULLABLE = "nullable"
    LAZY = "lazy"
    PIPE = "pipe"
    PREPROCESS = "preprocess"

    # Terminals
    OBJECT = "object"
    ARRAY = "array"
    RECORD = "record"
    STRING = "string"
    NUMBER = "number"
    INTEGER = "integer"
    BOOLEAN = "boolean"
    DATE = "date"
    LITERAL = "literal"
    ENUM = "enum"
    UNION = "union"
    VOID = "void"
    NEVER = "never"
    ANY = "any"
    UNKNOWN = "unknown"


WRAPPER_KINDS: Final[frozenset[SchemaKind]] = frozenset(
    {SchemaKind.OPTIONAL, SchemaKind.DEFAULT, SchemaKind.NULLABLE, SchemaKind.LAZY}
)
TRANSFORM_KINDS: Final[frozenset[SchemaKind]] = frozenset(
    {SchemaKind.PIPE, SchemaKind.PREPROCESS}
)
COERCIBLE_KINDS: Final[frozenset[SchemaKind]] = frozenset(
    {SchemaKind.NUMBER, SchemaKind.INTEGER, SchemaKind.BOOLEAN, SchemaKind.DATE}
)

_ARRAY_ORIGINS: Final[frozenset[Any]] = frozenset(
    {
        list,
        tuple,
        set,
        frozenset,
        collections.abc.Sequence,
        collections.abc.MutableSequence,
        collections.abc.Set,
        collections.abc.MutableSet,
        collections.abc.Iterable,
    }
)
_RECORD_ORIGINS: Final[frozenset[Any]] = frozenset(
    {dict, collections.abc.Mapping, collections.abc.MutableMapping}
)
_STRING_TYPES: Final[tuple[type, ...]] = (str, uuid.UUID, AnyUrl, EmailStr)
_NUMBER_TYPES: Final[tuple[type, ...]] = (float, decimal.Decimal)
_DATE_TYPES: Final[tuple[type, ...]] = (
    datetime.date,
    datetime.time,
    datetime.timedelta,
)
_PREPROCESS_VALIDATORS: Final[tuple[type, ...]] = (BeforeValidator,)
_PIPE_VALIDATORS: Final[tuple[type, ...]] = (
    AfterValidator,
    WrapValidator,
    PlainValidator,
)


@dataclass(frozen=True, slots=True)
class SchemaShape:
    """One classified layer of a schema.

    Attributes:
        kind: The layer's kind.
        schema: The schema this layer was derived from.
        inner: Wrapped schema for wrappers and transforms, element schema for
            arrays, value schema for records.
        members: Member schemas of a union, positional element schemas of a
            fixed-length tuple.
        values: Allowed values of a literal or enum.
    """

    kind: SchemaKind
    schema: Any
    inner: Any = None
    members: tuple[Any, ...] = ()
    values: tuple[Any, ...] = ()


def _field_annotation(field: FieldInfo) -> Any:  # noqa: ANN401 - annotations are arbitrary
    """Rebuild the full annotation of a model field, constraints included."""
    if field.metadata:
        return Annotated[field.annotation, *field.metadata]
    return field.annotation


def _describe_field(field: FieldInfo) -> SchemaShape:
    inner = _field_annotation(field)
    if field.is_required():
        return describe(inner)
    if field.default_factory is None and field.default is None:
        return SchemaShape(SchemaKind.OPTIONAL, field, inner=inner)
    return SchemaShape(SchemaKind.DEFAULT, field, inner=inner)


def _describe_annotated(schema: Any) -> SchemaShape:  # noqa: ANN401
    base = schema.__origin__
    metadata = list(schema.__metadata__)

    # The last validator is the outermost stage
    for index in range(len(metadata) - 1, -1, -1):
        item = metadata[index]
        if isinstance(item, _PREPROCESS_VALIDATORS):
            kind = SchemaKind.PREPROCESS
        elif isinstance(item, _PIPE_VALIDATORS):
            kind = SchemaKind.PIPE
        else:
            continue
        rest = metadata[:index] + metadata[index + 1 :]
        inner = Annotated[base, *rest] if rest else base
        return SchemaShape(kind, schema, inner=inner)

    return describe(base)


def _describe_union(schema: Any, members: tuple[Any, ...]) -> SchemaShape:  # noqa: ANN401
    present = tuple(m for m in members if m is not None and m is not types.NoneType)
    if len(present) < len(members):
        inner = present[0] if len(present) == 1 else Union[present]  # noqa: UP007
        return SchemaShape(SchemaKind.NULLABLE, schema, inner=inner)
    return SchemaShape(SchemaKind.UNION, schema, members=members)


def _describe_generic(schema: Any, origin: Any) -> SchemaShape:  # noqa: ANN401
    args = typing.get_args(schema)
    if origin is tuple and args and args[-1] is not Ellipsis:
        # Fixed-length tuples keep one schema per position
        return SchemaShape(SchemaKind.ARRAY, schema, inner=args[0], members=args)
    if origin in _ARRAY_ORIGINS:
        return SchemaShape(SchemaKind.ARRAY, schema, inner=args[0] if args else Any)
    if origin in _RECORD_ORIGINS:
        return SchemaShape(SchemaKind.RECORD, schema, inner=args[1] if args else Any)
    if isinstance(origin, type) and issubclass(origin, BaseModel):
        # Parametrized generic models
        return SchemaShape(SchemaKind.OBJECT, schema)
    return SchemaShape(SchemaKind.UNKNOWN, schema)


def _describe_type(schema: type) -> SchemaShape:
    # Order matters: bool is an int, IntEnum is an int, datetime is a date
    if issubclass(schema, BaseModel):
        return SchemaShape(SchemaKind.OBJECT, schema)
    if issubclass(schema, enum.Enum):
        return SchemaShape(
            SchemaKind.ENUM, schema, values=tuple(member.value for member in schema)
        )
    if issubclass(schema, bool):
        return SchemaShape(SchemaKind.BOOLEAN, schema)
    if issubclass(schema, int):
        return SchemaShape(SchemaKind.INTEGER, schema)
    if issubclass(schema, _NUMBER_TYPES):
        return SchemaShape(SchemaKind.NUMBER, schema)
    if issubclass(schema, _DATE_TYPES):
        return SchemaShape(SchemaKind.DATE, schema)
    if issubclass(schema, _STRING_TYPES):
        return SchemaShape(SchemaKind.STRING, schema)
    if issubclass(schema, tuple(o for o in _ARRAY_ORIGINS if isinstance(o, type))):
        return SchemaShape(SchemaKind.ARRAY, schema, inner=Any)
    if issubclass(schema, dict):
        return SchemaShape(SchemaKind.RECORD, schema, inner=Any)
    return SchemaShape(SchemaKind.UNKNOWN, schema)


def describe(schema: Any) -> SchemaShape:  # noqa: ANN401 - schemas are arbitrary
    """Classify the outermost layer of a schema.

    Args:
        schema: A type annotation or a pydantic ``FieldInfo``.

    Returns:
        SchemaShape: The layer's kind and payload.
    """
    if isinstance(schema, FieldInfo):
        return _describe_field(schema)
    if schema is None or schema is types.NoneType:
        return SchemaShape(SchemaKind.VOID, schema)
    if schema is Never or schema is NoReturn:
        return SchemaShape(SchemaKind.NEVER, schema)
    if schema is Any:
        return SchemaShape(SchemaKind.ANY, schema)
    if isinstance(schema, TypeAliasType):
        return SchemaShape(SchemaKind.LAZY, schema, inner=schema.__value__)

    origin = typing.get_origin(schema)
    if origin is Annotated:
        return _describe_annotated(schema)
    if origin is Union or origin is types.UnionType:
        return _describe_union(schema, typing.get_args(schema))
    if origin is Literal:
        return SchemaShape(SchemaKind.LITERAL, schema, values=typing.get_args(schema))
    if origin is not None:
        return _describe_generic(schema, origin)
    if isinstance(schema, type):
        return _describe_type(schema)
    return SchemaShape(SchemaKind.UNKNOWN, schema)


def unwrap_shape(schema: Any, unwrap_transforms: bool) -> SchemaShape:  # noqa: ANN401, FBT001
    """Strip wrapper layers and return the first terminal layer.

    Optional, default, nullable and lazy layers are always stripped. Pipe and
    preprocess layers are stripped only when ``unwrap_transforms`` is set;
    otherwise the transform layer itself is returned.

    Args:
        schema: Schema to unwrap.
        unwrap_transforms: Whether to look through validator stages.

    Returns:
        SchemaShape: The first layer that is not stripped.
    """
    shape = describe(schema)
    while shape.kind in WRAPPER_KINDS or (
        unwrap_transforms and shape.kind in TRANSFORM_KINDS
    ):
        shape = describe(shape.inner)
    return shape


def unwrap(schema: Any, unwrap_transforms: bool) -> Any:  # noqa: ANN401, FBT001
    """Strip wrapper layers from a schema.

    ``unwrap(unwrap(s, True), True) == unwrap(s, True)`` for every schema.

    Args:
        schema: Schema to unwrap.
        unwrap_transforms: Whether to look through validator stages.

    Returns:
        Any: The canonical schema.
    """
    return unwrap_shape(schema, unwrap_transforms).schema


def is_void_like(schema: Any) -> bool:  # noqa: ANN401
    """Whether the schema accepts no meaningful payload (``None`` or ``Never``)."""
    match describe(schema).kind:
        case SchemaKind.VOID | SchemaKind.NEVER:
            return True
        case _:
            return False


def is_object_like(schema: Any) -> bool:  # noqa: ANN401
    """Whether the schema is a model with named fields."""
    return describe(schema).kind is SchemaKind.OBJECT


def is_array_like(schema: Any) -> bool:  # noqa: ANN401
    """Whether the schema is a list-like type, possibly optional or defaulted."""
    return unwrap_shape(schema, unwrap_transforms=False).kind is SchemaKind.ARRAY


def is_string_like(schema: Any) -> bool:  # noqa: ANN401
    """Whether values of the schema can be read from a string.

    This is a conservative approximation used to type path and query
    parameters. Validator stages count as string-like since they receive the
    raw string and transform it server-side. Arrays are string-like when their
    elements are, so repeated query keys can feed them.

    Args:
        schema: Schema to classify.

    Returns:
        bool: True when the schema can be fed from a string.
    """
    shape = unwrap_shape(schema, unwrap_transforms=False)
    match shape.kind:
        case SchemaKind.STRING | SchemaKind.PIPE | SchemaKind.PREPROCESS:
            return True
        case SchemaKind.UNION:
            return all(is_string_like(member) for member in shape.members)
        case SchemaKind.LITERAL:
            return all(isinstance(value, str) for value in shape.values)
        case SchemaKind.ENUM:
            return not any(isinstance(value, int | float) for value in shape.values)
        case SchemaKind.ARRAY if shape.members:
            return all(is_string_like(member) for member in shape.members)
        case SchemaKind.ARRAY:
            return is_string_like(shape.inner)
        case _:
            return False


def is_coercible_scalar(schema: Any) -> bool:  # noqa: ANN401
    """Whether the schema is a number, integer, boolean or date (or a list of them)."""
    shape = unwrap_shape(schema, unwrap_transforms=False)
    match shape.kind:
        case SchemaKind.NUMBER | SchemaKind.INTEGER | SchemaKind.BOOLEAN | SchemaKind.DATE:
            return True
        case SchemaKind.ARRAY if shape.members:
            return all(
                is_string_like(member) or is_coercible_scalar(member)
                for member in shape.members
            )
        case SchemaKind.ARRAY:
            return is_coercible_scalar(shape.inner)
        case _:
            return False


def accepts_missing(field: FieldInfo) -> bool:
    """Whether a model field may be omitted from the input."""
    return not field.is_required()


def object_fields(schema: Any) -> dict[str, FieldInfo]:  # noqa: ANN401
    """Return the fields of an object schema keyed by their input key.

    The input key is the field alias when one is set, the field name otherwise.

    Args:
        schema: A schema whose unwrapped kind is OBJECT.

    Returns:
        dict[str, FieldInfo]: The model's fields, empty for non-object schemas.
    """
    shape = unwrap_shape(schema, unwrap_transforms=True)
    if shape.kind is not SchemaKind.OBJECT:
        return {}
    model = typing.get_origin(shape.schema) or shape.schema
    return {field.alias or name: field for name, field in model.model_fields.items()}


def field_definition(field: FieldInfo) -> tuple[Any, FieldInfo]:
    """Return a ``(annotation, FieldInfo)`` pair for ``pydantic.create_model``.

    The FieldInfo is copied since pydantic merges annotation metadata into the
    instance it is given.

    Args:
        field: A field of an existing model.

    Returns:
        tuple[Any, FieldInfo]: A definition that recreates the field.
    """
    field_copy = copy(field)
    field_copy.metadata = list(field.metadata)
    return field.annotation, field_copy

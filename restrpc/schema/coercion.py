"""Derive input models that coerce string wire values into scalars.

Path segments and query strings only carry text, so a query procedure declaring
``limit: int`` receives ``"10"``. Pydantic's lax mode already converts such
strings, but a model declared with ``strict=True`` (or a field marked
``Strict()``) refuses them. ``coerce_schema`` derives a subclass of the model in
which every coercible leaf is re-annotated with ``Strict(False)``.

The user's model is never modified; derived models are cached per class.
"""

from functools import lru_cache
from typing import Annotated, Any, Union

from pydantic import BaseModel, Strict, create_model

from restrpc.schema.shapes import SchemaKind, describe, field_definition


def coerce_annotation(annotation: Any) -> Any:  # noqa: ANN401 - annotations are arbitrary
    """Rewrite an annotation so that its scalar leaves accept strings.

    Recurses through nullable unions, type aliases, arrays and nested models.
    Validator stages are left untouched since they receive the raw value.

    Args:
        annotation: The annotation to rewrite.

    Returns:
        Any: The rewritten annotation, or the same object if nothing changed.
    """
    shape = describe(annotation)
    match shape.kind:
        case SchemaKind.NUMBER | SchemaKind.INTEGER | SchemaKind.BOOLEAN | SchemaKind.DATE:
            return Annotated[annotation, Strict(False)]
        case SchemaKind.OBJECT if isinstance(annotation, type):
            return coerce_schema(annotation)
        case SchemaKind.NULLABLE:
            inner = coerce_annotation(shape.inner)
            if inner is shape.inner:
                return annotation
            return Union[inner, None]  # noqa: UP007
        case SchemaKind.LAZY:
            inner = coerce_annotation(shape.inner)
            return annotation if inner is shape.inner else inner
        case SchemaKind.ARRAY if shape.members:
            members = tuple(coerce_annotation(member) for member in shape.members)
            if all(new is old for new, old in zip(members, shape.members, strict=True)):
                return annotation
            return tuple[*members]
        case SchemaKind.ARRAY:
            element = coerce_annotation(shape.inner)
            if element is shape.inner:
                return annotation
            origin = getattr(annotation, "__origin__", None) or annotation
            if origin is tuple:
                return tuple[element, ...]
            return origin[element]
        case _:
            return annotation


@lru_cache(maxsize=None)
def coerce_schema(model: type[BaseModel]) -> type[BaseModel]:
    """Return a model whose coercible fields accept string values.

    Args:
        model: The declared input model.

    Returns:
        type[BaseModel]: A cached subclass of ``model`` with rewritten fields, or
        ``model`` itself when no field needs coercion.
    """
    overrides: dict[str, Any] = {}
    for name, field in model.model_fields.items():
        annotation = coerce_annotation(field.annotation)
        if annotation is not field.annotation:
            overrides[name] = (annotation, field_definition(field)[1])

    if not overrides:
        return model

    return create_model(  # type: ignore[call-overload]
        model.__name__,
        __base__=model,
        __module__=model.__module__,
        **overrides,
    )

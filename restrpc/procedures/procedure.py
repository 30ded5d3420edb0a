"""Procedure definitions and router trees.

Procedures are built with a fluent, immutable builder::

    from pydantic import BaseModel

    from restrpc.procedures.procedure import procedure, router


    class GreetingInput(BaseModel):
        name: str


    class Greeting(BaseModel):
        greeting: str


    say_hello = (
        procedure.meta(openapi={"method": "GET", "path": "/say-hello"})
        .input(GreetingInput)
        .output(Greeting)
        .query(lambda ctx, data: Greeting(greeting=f"Hello {data.name}!"))
    )


    app_router = router(greetings=router(say_hello=say_hello))

Every builder call returns a new builder, so a partially configured builder
can be shared as a base (``authed = procedure.meta(openapi={"protect": True})``).

Resolvers are called as ``resolver(ctx, input)`` and may be plain functions
or coroutines.
"""

from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass, field, replace
from enum import StrEnum
from functools import cached_property
from types import NoneType
from typing import Any

from pydantic import BaseModel, create_model

from restrpc.core.exceptions import RouterDefinitionError
from restrpc.schema.shapes import field_definition, is_object_like, unwrap

type Resolver = Callable[[Any, Any], Any]
type Router = Mapping[str, "Procedure | Router"]


class ProcedureKind(StrEnum):
    """Kind of a procedure."""

    QUERY = "query"
    MUTATION = "mutation"
    SUBSCRIPTION = "subscription"


def merge_inputs(inputs: tuple[Any, ...]) -> Any:  # noqa: ANN401 - schemas are arbitrary
    """Merge the input schemas of a procedure into one.

    A single input is returned unchanged. Several inputs must all be object
    models; they are merged into a new model by shallow field union where
    later inputs win on duplicate field names. The merged model takes the
    configuration of the last input, such as ``strict`` or ``extra``; model
    validators are not carried over.

    Args:
        inputs: Input schemas in declaration order.

    Returns:
        Any: The merged schema, or None when no input was declared.

    Raises:
        RouterDefinitionError: If several inputs are declared and one of them
            is not an object model.
    """
    if not inputs:
        return None
    if len(inputs) == 1:
        return inputs[0]

    fields: dict[str, Any] = {}
    models: list[type[BaseModel]] = []
    for schema in inputs:
        model = unwrap(schema, unwrap_transforms=True)
        if not is_object_like(model):
            raise RouterDefinitionError("Input parser must be an object model")
        models.append(model)
        for name, field_info in model.model_fields.items():
            fields.pop(name, None)
            fields[name] = field_definition(field_info)

    return create_model(
        "".join(model.__name__ for model in models),
        __config__=models[-1].model_config,
        **fields,
    )


@dataclass(frozen=True)
class Procedure:
    """A callable unit exposed by a router.

    Attributes:
        kind: Query, mutation or subscription.
        resolver: Called as ``resolver(ctx, input)``; may return an awaitable.
        inputs: Declared input schemas, merged by ``input_schema``.
        output: Declared output schema, or None when no output was declared.
        meta: Free-form metadata; the ``"openapi"`` entry configures HTTP exposure.
    """

    kind: ProcedureKind
    resolver: Resolver
    inputs: tuple[Any, ...] = ()
    output: Any = None
    meta: Mapping[str, Any] = field(default_factory=dict)

    @cached_property
    def input_schema(self) -> Any:  # noqa: ANN401
        """Merged input schema, or None when no input was declared."""
        return merge_inputs(self.inputs)

    @property
    def has_inputs_defined(self) -> bool:
        """Whether at least one input schema was declared."""
        return bool(self.inputs)


@dataclass(frozen=True, slots=True)
class ProcedureBuilder:
    """Immutable builder for ``Procedure`` definitions."""

    inputs: tuple[Any, ...] = ()
    output_schema: Any = None
    metadata: Mapping[str, Any] = field(default_factory=dict)

    def input(self, schema: Any) -> "ProcedureBuilder":  # noqa: ANN401
        """Add an input schema. ``None`` declares a void input."""
        return replace(self, inputs=(*self.inputs, NoneType if schema is None else schema))

    def output(self, schema: Any) -> "ProcedureBuilder":  # noqa: ANN401
        """Set the output schema. ``None`` declares a void output."""
        return replace(self, output_schema=NoneType if schema is None else schema)

    def meta(
        self, meta: Mapping[str, Any] | None = None, /, **entries: Any
    ) -> "ProcedureBuilder":
        """Merge metadata entries into the procedure's metadata."""
        return replace(self, metadata={**self.metadata, **(meta or {}), **entries})

    def _build(self, kind: ProcedureKind, resolver: Resolver) -> Procedure:
        return Procedure(
            kind=kind,
            resolver=resolver,
            inputs=self.inputs,
            output=self.output_schema,
            meta=dict(self.metadata),
        )

    def query(self, resolver: Resolver) -> Procedure:
        """Build a query procedure. Usable as a decorator."""
        return self._build(ProcedureKind.QUERY, resolver)

    def mutation(self, resolver: Resolver) -> Procedure:
        """Build a mutation procedure. Usable as a decorator."""
        return self._build(ProcedureKind.MUTATION, resolver)

    def subscription(self, resolver: Resolver) -> Procedure:
        """Build a subscription procedure. Usable as a decorator."""
        return self._build(ProcedureKind.SUBSCRIPTION, resolver)


procedure = ProcedureBuilder()


def router(**record: "Procedure | Router") -> dict[str, "Procedure | Router"]:
    """Create a router from named procedures and nested routers.

    Args:
        **record: Procedures and sub-routers keyed by name.

    Returns:
        dict[str, Procedure | Router]: The router, in declaration order.

    Raises:
        TypeError: If a value is neither a procedure nor a router.
    """
    for name, value in record.items():
        if not isinstance(value, Procedure | Mapping):
            msg = (
                f"Router entry {name!r} must be a procedure or a router, "
                f"got {type(value).__name__}"
            )
            raise TypeError(msg)
    return dict(record)


def iter_procedures(tree: Router, prefix: str = "") -> Iterator[tuple[str, Procedure]]:
    """Walk a router depth-first in declaration order.

    Args:
        tree: The router to walk.
        prefix: Dotted path of ``tree`` inside its parent.

    Yields:
        tuple[str, Procedure]: Dotted procedure path and procedure.
    """
    for name, value in tree.items():
        path = f"{prefix}.{name}" if prefix else name
        if isinstance(value, Procedure):
            yield path, value
        else:
            yield from iter_procedures(value, path)

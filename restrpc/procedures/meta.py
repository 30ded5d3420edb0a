"""OpenAPI metadata of procedures.

A procedure is exposed over HTTP through the ``"openapi"`` entry of its
metadata. Every field is optional: defaults are derived from the procedure's
kind and dotted path, then merged with what the procedure declares.

Merge modes (``resolve_openapi_meta``):
- **no declaration**: the defaults
- **override**: the declaration alone, defaults ignored
- **additional**: defaults with declared keys on top; declared tags are
  appended to the default tag
- **default**: defaults with declared keys on top; declared tags replace the
  default tag
"""

from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from restrpc.core.constants import DEFAULT_TAG
from restrpc.core.exceptions import RouterDefinitionError
from restrpc.procedures.procedure import Procedure, ProcedureKind, Router, iter_procedures


class OpenApiMeta(BaseModel):
    """How a procedure is exposed over HTTP and described in OpenAPI."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    enabled: bool = Field(default=True, description="Expose the procedure at all")
    override: bool = Field(default=False, description="Ignore derived defaults")
    additional: bool = Field(
        default=False, description="Append declared tags to the default tag"
    )
    method: str | None = Field(default=None, description="HTTP method")
    path: str | None = Field(default=None, description="Path template, e.g. /users/{id}")
    operation_id: str | None = None
    summary: str | None = None
    description: str | None = None
    protect: bool = Field(default=True, description="Document the security schemes")
    tags: list[str] | None = None
    content_types: list[str] | None = Field(
        default=None, description="Accepted request body content types"
    )
    deprecated: bool = False
    request_headers: type[BaseModel] | None = None
    response_headers: type[BaseModel] | None = None
    success_description: str | None = None
    error_responses: list[int] | dict[int, str] | None = None


def default_openapi_meta(kind: ProcedureKind, procedure_path: str) -> OpenApiMeta:
    """Derive the default metadata of a procedure from its kind and path.

    Args:
        kind: Procedure kind.
        procedure_path: Dotted procedure path.

    Returns:
        OpenApiMeta: GET for queries, POST otherwise, at ``/{procedure_path}``.
    """
    return OpenApiMeta(
        method="GET" if kind is ProcedureKind.QUERY else "POST",
        path=f"/{procedure_path}",
        enabled=True,
        tags=[procedure_path.split(".")[0] or DEFAULT_TAG],
        protect=True,
    )


def resolve_openapi_meta(
    defaults: OpenApiMeta, declared: OpenApiMeta | None
) -> OpenApiMeta:
    """Merge declared metadata with derived defaults.

    Declared fields replace their defaults, except that with ``additional``
    declared tags are appended after the default tag instead of replacing it.
    Tags declared in both keep their first position. ``override`` discards the
    defaults entirely.

    Args:
        defaults: Metadata derived by ``default_openapi_meta``.
        declared: Metadata declared on the procedure, if any.

    Returns:
        OpenApiMeta: The effective metadata.
    """
    if declared is None:
        return defaults
    if declared.override:
        return declared

    explicit = {name: getattr(declared, name) for name in declared.model_fields_set}
    if declared.additional and declared.tags is not None:
        explicit["tags"] = list(dict.fromkeys([*(defaults.tags or []), *declared.tags]))
    return defaults.model_copy(update=explicit)


def get_declared_meta(proc: Procedure) -> OpenApiMeta | None:
    """Read the ``"openapi"`` metadata entry of a procedure.

    Args:
        proc: The procedure.

    Returns:
        OpenApiMeta | None: The declared block, validated, or None.

    Raises:
        RouterDefinitionError: If the declared block is not valid metadata.
    """
    declared = proc.meta.get("openapi")
    if declared is None or isinstance(declared, OpenApiMeta):
        return declared
    try:
        return OpenApiMeta.model_validate(declared)
    except ValidationError as exc:
        msg = f"Invalid OpenAPI metadata ({exc.error_count()} errors)"
        raise RouterDefinitionError(msg, exc) from exc


@dataclass(frozen=True, slots=True)
class OpenApiProcedure:
    """A procedure exposed over HTTP, with its effective metadata.

    Attributes:
        path: Dotted procedure path.
        procedure: The procedure.
        openapi: Effective OpenAPI metadata.
        metadata: The procedure's metadata with ``"openapi"`` replaced by the
            effective block; passed to document filters.
    """

    path: str
    procedure: Procedure
    openapi: OpenApiMeta
    metadata: Mapping[str, Any]

    @property
    def kind(self) -> ProcedureKind:
        """Kind of the procedure."""
        return self.procedure.kind

    @property
    def name(self) -> str:
        """``{kind}.{path}``, used to prefix definition errors."""
        return f"{self.procedure.kind}.{self.path}"


def iter_openapi_procedures(tree: Router) -> Iterator[OpenApiProcedure]:
    """Walk a router and yield the enabled procedures with merged metadata.

    Args:
        tree: The router to walk.

    Yields:
        OpenApiProcedure: Enabled procedures, depth-first in declaration order.
    """
    for path, proc in iter_procedures(tree):
        try:
            declared = get_declared_meta(proc)
        except RouterDefinitionError as error:
            raise error.with_prefix(f"{proc.kind}.{path}") from error.cause
        if declared is not None and not declared.enabled:
            continue

        openapi = resolve_openapi_meta(default_openapi_meta(proc.kind, path), declared)
        if not openapi.enabled:
            continue

        yield OpenApiProcedure(
            path=path,
            procedure=proc,
            openapi=openapi,
            metadata={**proc.meta, "openapi": openapi},
        )

"""Unit tests for restrpc/procedures/procedure.py."""

from types import NoneType

import pytest
from pydantic import BaseModel, ConfigDict, ValidationError

from restrpc.core.exceptions import RouterDefinitionError
from restrpc.procedures.procedure import (
    Procedure,
    ProcedureKind,
    iter_procedures,
    merge_inputs,
    procedure,
    router,
)


class Pagination(BaseModel):
    """Shared pagination input."""

    limit: int = 10
    shared: str = "a"


class Filters(BaseModel):
    """Procedure-specific input."""

    status: str
    shared: int = 0


class ClosedFilters(BaseModel):
    """Procedure-specific input refusing unknown keys."""

    model_config = ConfigDict(extra="forbid")

    status: str


@pytest.mark.unit
class TestProcedureBuilder:
    """Test the immutable builder."""

    def test_builder_calls_return_new_builders(self) -> None:
        """Configuring a builder never changes the builder it came from."""
        base = procedure.meta(openapi={"protect": True})

        derived = base.input(Pagination).output(str)

        assert base.inputs == ()
        assert base.output_schema is None
        assert derived.inputs == (Pagination,)
        assert derived.output_schema is str

    def test_none_declares_void(self) -> None:
        """``None`` input and output are stored as ``NoneType``."""
        built = procedure.input(None).output(None).mutation(lambda *_: None)

        assert built.inputs == (NoneType,)
        assert built.output is NoneType

    def test_meta_is_merged(self) -> None:
        """Metadata from successive ``meta`` calls is merged, later keys winning."""
        built = procedure.meta({"a": 1, "b": 1}).meta(b=2, c=3).query(lambda *_: None)

        assert built.meta == {"a": 1, "b": 2, "c": 3}

    @pytest.mark.parametrize(
        ("method", "kind"),
        [
            ("query", ProcedureKind.QUERY),
            ("mutation", ProcedureKind.MUTATION),
            ("subscription", ProcedureKind.SUBSCRIPTION),
        ],
    )
    def test_kinds(self, method: str, kind: ProcedureKind) -> None:
        """Each terminal builder call produces its kind."""
        built = getattr(procedure, method)(lambda *_: None)

        assert isinstance(built, Procedure)
        assert built.kind is kind

    def test_usable_as_decorator(self) -> None:
        """Terminal builder calls accept the resolver as a decorator."""

        @procedure.input(Pagination).query
        def list_items(_ctx: object, data: Pagination) -> list[int]:
            return list(range(data.limit))

        assert isinstance(list_items, Procedure)
        assert list_items(None, Pagination(limit=2)) == [0, 1]


@pytest.mark.unit
class TestMergeInputs:
    """Test input schema merging."""

    def test_no_input(self) -> None:
        """Without declared inputs there is no schema."""
        assert merge_inputs(()) is None
        assert procedure.query(lambda *_: None).input_schema is None

    def test_single_input_is_unchanged(self) -> None:
        """A single input is used as declared, whatever its kind."""
        assert merge_inputs((str,)) is str
        assert merge_inputs((Pagination,)) is Pagination

    def test_later_inputs_win(self) -> None:
        """Object inputs are merged by field union, later declarations winning."""
        merged = merge_inputs((Pagination, Filters))

        assert merged.__name__ == "PaginationFilters"
        assert list(merged.model_fields) == ["limit", "status", "shared"]
        assert merged.model_fields["shared"].annotation is int
        assert merged.model_validate({"status": "open"}).model_dump() == {
            "limit": 10,
            "status": "open",
            "shared": 0,
        }

    def test_last_input_config_is_kept(self) -> None:
        """The merged model validates with the configuration of the last input."""
        merged = merge_inputs((Pagination, ClosedFilters))

        assert merged.model_config["extra"] == "forbid"
        with pytest.raises(ValidationError, match="Extra inputs are not permitted"):
            merged.model_validate({"status": "open", "unknown": 1})

        reversed_merge = merge_inputs((ClosedFilters, Pagination))

        assert reversed_merge.model_validate({"status": "open", "unknown": 1}).limit == 10

    def test_source_fields_are_not_modified(self) -> None:
        """Merging leaves the declared models untouched."""
        merge_inputs((Pagination, Filters))

        assert Pagination.model_fields["shared"].annotation is str

    def test_non_object_input_is_rejected(self) -> None:
        """Merging requires every input to be an object model."""
        with pytest.raises(RouterDefinitionError, match="Input parser must be an object model"):
            merge_inputs((Pagination, str))

    def test_input_schema_is_cached(self) -> None:
        """The merged schema is computed once per procedure."""
        built = procedure.input(Pagination).input(Filters).query(lambda *_: None)

        assert built.input_schema is built.input_schema
        assert built.has_inputs_defined


@pytest.mark.unit
class TestRouterTree:
    """Test router construction and traversal."""

    def test_router_rejects_other_values(self) -> None:
        """Routers only hold procedures and sub-routers."""
        with pytest.raises(TypeError, match="'broken' must be a procedure or a router"):
            router(broken="not a procedure")  # type: ignore[arg-type]

    def test_iter_procedures_is_depth_first(self) -> None:
        """Procedures are yielded depth-first in declaration order."""
        noop = procedure.query(lambda *_: None)
        tree = router(a=noop, nested=router(b=noop, deeper=router(c=noop)), d=noop)

        assert [path for path, _ in iter_procedures(tree)] == [
            "a",
            "nested.b",
            "nested.deeper.c",
            "d",
        ]

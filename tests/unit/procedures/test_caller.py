"""Unit tests for restrpc/procedures/caller.py."""

import datetime
from typing import Annotated, Any

import pytest
from pydantic import BaseModel, ConfigDict, ValidationError
from pytest_mock import MockerFixture

from restrpc.core.exceptions import ErrorCode, RpcError
from restrpc.procedures.caller import (
    INPUT_VALIDATION_FAILED,
    OUTPUT_VALIDATION_FAILED,
    call_procedure,
    get_input_validator,
    get_type_adapter,
    is_pydantic_schema,
    serialize_output,
    validate_input,
)
from restrpc.procedures.procedure import procedure


class Page(BaseModel):
    """Strict pagination input."""

    model_config = ConfigDict(strict=True)

    limit: int


class Item(BaseModel):
    """Output item."""

    id: int
    created: datetime.date


class NotASchema:
    """A class pydantic cannot validate."""


@pytest.mark.unit
class TestTypeAdapters:
    """Test adapter caching and schema detection."""

    def test_hashable_schemas_are_cached(self) -> None:
        """The same adapter is returned for the same schema."""
        assert get_type_adapter(list[int]) is get_type_adapter(list[int])

    def test_unhashable_schemas_are_supported(self) -> None:
        """Schemas with unhashable metadata get a fresh adapter."""
        schema = Annotated[int, {"unhashable": True}]

        adapter = get_type_adapter(schema)

        assert adapter.validate_python(3) == 3

    def test_is_pydantic_schema(self) -> None:
        """Arbitrary classes are not schemas."""
        assert is_pydantic_schema(Page)
        assert is_pydantic_schema(list[str])
        assert not is_pydantic_schema(NotASchema)


@pytest.mark.unit
class TestValidation:
    """Test input validation and output serialization."""

    def test_no_validator_passes_input_through(self) -> None:
        """Procedures without declared input receive the raw input."""
        raw = {"anything": ["goes"]}

        assert validate_input(None, raw) is raw

    def test_input_failure_is_bad_request(self) -> None:
        """Validation errors become BAD_REQUEST with the pydantic error as cause."""
        with pytest.raises(RpcError) as exc_info:
            validate_input(get_type_adapter(Page), {"limit": "many"})

        error = exc_info.value
        assert error.code is ErrorCode.BAD_REQUEST
        assert error.message == INPUT_VALIDATION_FAILED
        assert isinstance(error.cause, ValidationError)

    def test_input_validator_coerces_objects(self) -> None:
        """With coercion the strict input accepts numeric strings."""
        proc = procedure.input(Page).query(lambda *_: None)

        lax = get_input_validator(proc, coerce_scalars=True)
        strict = get_input_validator(proc, coerce_scalars=False)

        assert lax is not None
        assert strict is not None
        assert lax.validate_python({"limit": "5"}).limit == 5
        with pytest.raises(ValidationError):
            strict.validate_python({"limit": "5"})

    def test_input_validator_without_input(self) -> None:
        """No input declared, no validator."""
        proc = procedure.query(lambda *_: None)

        assert get_input_validator(proc, coerce_scalars=True) is None

    def test_serialize_output(self) -> None:
        """Outputs are validated and dumped to JSON types."""
        result = serialize_output(Item, {"id": 1, "created": datetime.date(2024, 1, 2)})

        assert result == {"id": 1, "created": "2024-01-02"}

    def test_serialize_output_without_schema(self) -> None:
        """Undeclared outputs are still converted to JSON types."""
        result = serialize_output(None, {"when": datetime.date(2024, 1, 2), "ids": (1, 2)})

        assert result == {"when": "2024-01-02", "ids": [1, 2]}

    def test_output_failure_is_internal(self) -> None:
        """An output mismatch is a server error."""
        with pytest.raises(RpcError) as exc_info:
            serialize_output(Item, {"id": "x"})

        error = exc_info.value
        assert error.code is ErrorCode.INTERNAL_SERVER_ERROR
        assert error.message == OUTPUT_VALIDATION_FAILED
        assert isinstance(error.cause, ValidationError)


@pytest.mark.unit
class TestCallProcedure:
    """Test the full call sequence."""

    async def test_sync_resolver(self) -> None:
        """Plain resolvers are called with the context and validated input."""
        seen: list[Any] = []

        def resolver(ctx: Any, data: Page) -> dict[str, Any]:
            seen.append((ctx, data))
            return {"id": data.limit, "created": "2024-01-02"}

        proc = procedure.input(Page).output(Item).query(resolver)

        result = await call_procedure(proc, {"user": "ann"}, {"limit": "7"}, coerce_scalars=True)

        assert result == {"id": 7, "created": "2024-01-02"}
        assert seen[0][0] == {"user": "ann"}
        assert seen[0][1].limit == 7

    async def test_async_resolver_is_awaited(self, mocker: MockerFixture) -> None:
        """Coroutine resolvers are awaited."""
        resolver = mocker.AsyncMock(return_value="pong")
        proc = procedure.input(None).output(str).mutation(resolver)

        result = await call_procedure(proc, None, None)

        assert result == "pong"
        resolver.assert_awaited_once_with(None, None)

    async def test_resolver_errors_propagate(self) -> None:
        """Errors raised by resolvers are not wrapped here."""

        def resolver(_ctx: Any, _data: Any) -> None:
            raise RpcError(ErrorCode.CONFLICT, "Already exists")

        proc = procedure.mutation(resolver)

        with pytest.raises(RpcError, match="Already exists"):
            await call_procedure(proc, None, {})

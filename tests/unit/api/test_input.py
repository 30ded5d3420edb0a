"""Unit tests for restrpc/api/input.py."""

from collections.abc import Sequence

import pytest
from pydantic import BaseModel
from starlette.datastructures import QueryParams
from starlette.requests import Request
from starlette.types import Message

from restrpc.api.constants import BODY_TOO_LARGE_REASON, CLIENT_DISCONNECTED_REASON
from restrpc.api.input import (
    check_content_type,
    flatten_query,
    get_body,
    get_media_type,
    parse_body,
    read_body,
    wrap_array_fields,
)
from restrpc.core.constants import FORM_CONTENT_TYPE, JSON_CONTENT_TYPE
from restrpc.core.context import AbortSignal
from restrpc.core.exceptions import ErrorCode, RpcError


class SearchInput(BaseModel):
    """Query input with array fields."""

    tags: list[str] | None = None
    ids: list[int] = []
    limit: int = 10


def make_request(
    chunks: Sequence[bytes], headers: dict[str, str] | None = None, *, disconnect: bool = False
) -> Request:
    """Build a POST request whose body arrives in ``chunks``."""
    messages: list[Message] = [
        {"type": "http.request", "body": chunk, "more_body": index < len(chunks) - 1}
        for index, chunk in enumerate(chunks)
    ]
    if disconnect:
        messages = [*messages[:-1], {"type": "http.disconnect"}]

    async def receive() -> Message:
        return messages.pop(0) if messages else {"type": "http.disconnect"}

    scope = {
        "type": "http",
        "method": "POST",
        "path": "/",
        "query_string": b"",
        "headers": [(k.encode(), v.encode()) for k, v in (headers or {}).items()],
    }
    return Request(scope, receive)


@pytest.mark.unit
class TestContentType:
    """Test content type negotiation."""

    @pytest.mark.parametrize(
        ("content_type", "expected"),
        [
            ("application/json", "application/json"),
            ("Application/JSON; charset=utf-8", "application/json"),
            (None, None),
        ],
    )
    def test_get_media_type(self, content_type: str | None, expected: str | None) -> None:
        """Parameters are stripped and case is folded."""
        assert get_media_type(content_type) == expected

    def test_json_is_always_accepted(self) -> None:
        """JSON bodies need no declaration."""
        assert check_content_type("application/json; charset=utf-8", []) == JSON_CONTENT_TYPE

    def test_form_needs_declaration(self) -> None:
        """Form bodies are only accepted when declared."""
        assert check_content_type(FORM_CONTENT_TYPE, [FORM_CONTENT_TYPE]) == FORM_CONTENT_TYPE

        with pytest.raises(RpcError) as exc_info:
            check_content_type(FORM_CONTENT_TYPE, [JSON_CONTENT_TYPE])
        assert exc_info.value.code is ErrorCode.UNSUPPORTED_MEDIA_TYPE

    def test_unsupported_content_type(self) -> None:
        """The message quotes the raw header."""
        with pytest.raises(RpcError) as exc_info:
            check_content_type("text/plain", [JSON_CONTENT_TYPE])

        assert exc_info.value.code is ErrorCode.UNSUPPORTED_MEDIA_TYPE
        assert exc_info.value.message == 'Unsupported content-type "text/plain'

    @pytest.mark.parametrize("content_type", [None, ""])
    def test_missing_content_type(self, content_type: str | None) -> None:
        """Body methods must send a content type."""
        with pytest.raises(RpcError, match="Missing content-type header"):
            check_content_type(content_type, [JSON_CONTENT_TYPE])


@pytest.mark.unit
class TestQueryInput:
    """Test query string flattening and array wrapping."""

    def test_flatten_query(self) -> None:
        """Single values collapse, repeated keys stay lists in order."""
        params = QueryParams("a=1&b=2&b=3&c=")

        assert flatten_query(params) == {"a": "1", "b": ["2", "3"], "c": ""}

    def test_wrap_array_fields(self) -> None:
        """Single values of array fields become one-element lists."""
        data = {"tags": "news", "ids": ["1", "2"], "limit": "5"}

        assert wrap_array_fields(SearchInput, data) == {
            "tags": ["news"],
            "ids": ["1", "2"],
            "limit": "5",
        }

    def test_wrap_array_fields_leaves_missing_keys(self) -> None:
        """Omitted array fields stay omitted."""
        assert wrap_array_fields(SearchInput, {"limit": "5"}) == {"limit": "5"}


@pytest.mark.unit
class TestBody:
    """Test body reading and parsing."""

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            (b"", {}),
            (b"  \n", {}),
            (b'{"a": 1}', {"a": 1}),
            (b"[1, 2]", [1, 2]),
            (b'"text"', "text"),
        ],
    )
    def test_parse_json(self, raw: bytes, expected: object) -> None:
        """Empty bodies parse to an empty object."""
        assert parse_body(raw, JSON_CONTENT_TYPE) == expected

    def test_parse_form(self) -> None:
        """Form bodies are flattened like query strings."""
        assert parse_body(b"name=Ann&tag=a&tag=b", FORM_CONTENT_TYPE) == {
            "name": "Ann",
            "tag": ["a", "b"],
        }

    @pytest.mark.parametrize(
        ("raw", "media_type"),
        [(b"{not json", JSON_CONTENT_TYPE), (b"\xff\xfe", FORM_CONTENT_TYPE)],
    )
    def test_parse_errors(self, raw: bytes, media_type: str) -> None:
        """Malformed bodies are PARSE_ERROR."""
        with pytest.raises(RpcError) as exc_info:
            parse_body(raw, media_type)

        assert exc_info.value.code is ErrorCode.PARSE_ERROR
        assert exc_info.value.message == "Failed to parse request body"

    async def test_read_body_in_chunks(self) -> None:
        """Chunks are concatenated."""
        request = make_request([b'{"a":', b" 1}"])

        assert await get_body(request, JSON_CONTENT_TYPE, 100, AbortSignal()) == {"a": 1}

    async def test_declared_length_over_limit(self) -> None:
        """A declared length above the limit fails before reading."""
        signal = AbortSignal()
        request = make_request([b"x" * 20], {"content-length": "20"})

        with pytest.raises(RpcError) as exc_info:
            await read_body(request, 10, signal)

        assert exc_info.value.code is ErrorCode.PAYLOAD_TOO_LARGE
        assert signal.aborted
        assert signal.reason == BODY_TOO_LARGE_REASON

    async def test_streamed_body_over_limit(self) -> None:
        """Reading stops as soon as the limit is exceeded."""
        signal = AbortSignal()
        request = make_request([b"x" * 8, b"x" * 8, b"x" * 8])

        with pytest.raises(RpcError) as exc_info:
            await read_body(request, 10, signal)

        assert exc_info.value.code is ErrorCode.PAYLOAD_TOO_LARGE
        assert exc_info.value.message == BODY_TOO_LARGE_REASON
        assert signal.aborted

    async def test_client_disconnect(self) -> None:
        """A disconnect mid-body aborts the signal."""
        signal = AbortSignal()
        request = make_request([b"x", b"y"], disconnect=True)

        with pytest.raises(RpcError) as exc_info:
            await read_body(request, 100, signal)

        assert exc_info.value.code is ErrorCode.CLIENT_CLOSED_REQUEST
        assert exc_info.value.http_status == 499
        assert signal.reason == CLIENT_DISCONNECTED_REASON

"""Gathering procedure input from requests.

Body methods read the request body, bodyless methods (GET, DELETE) read the
query string. Path parameters are merged on top by the dispatch pipeline.
"""

from collections.abc import Sequence
from typing import Any

import orjson
from starlette.datastructures import QueryParams
from starlette.requests import ClientDisconnect, Request

from restrpc.api.constants import BODY_TOO_LARGE_REASON, CLIENT_DISCONNECTED_REASON
from restrpc.core.constants import FORM_CONTENT_TYPE, JSON_CONTENT_TYPE
from restrpc.core.context import AbortSignal
from restrpc.core.exceptions import ErrorCode, RpcError
from restrpc.core.types import QueryInput
from restrpc.schema.shapes import is_array_like, object_fields


def get_media_type(content_type: str | None) -> str | None:
    """Strip parameters (``; charset=utf-8``) from a content type."""
    if content_type is None:
        return None
    return content_type.split(";", 1)[0].strip().lower()


def check_content_type(content_type: str | None, accepted: Sequence[str]) -> str:
    """Check that a body method carries a supported content type.

    JSON is always accepted. Form-urlencoded bodies are accepted only when the
    procedure lists them in its content types.

    Args:
        content_type: The raw ``content-type`` header.
        accepted: Content types declared by the procedure.

    Returns:
        str: The media type of the body.

    Raises:
        RpcError: UNSUPPORTED_MEDIA_TYPE when missing or not accepted.
    """
    if not content_type:
        raise RpcError(ErrorCode.UNSUPPORTED_MEDIA_TYPE, "Missing content-type header")

    media_type = get_media_type(content_type)
    if media_type == JSON_CONTENT_TYPE or (
        media_type == FORM_CONTENT_TYPE and FORM_CONTENT_TYPE in accepted
    ):
        return media_type

    raise RpcError(
        ErrorCode.UNSUPPORTED_MEDIA_TYPE, f'Unsupported content-type "{content_type}'
    )


def flatten_query(params: QueryParams) -> QueryInput:
    """Collapse single-valued keys; repeated keys stay lists.

    Args:
        params: Parsed query string or form body.

    Returns:
        QueryInput: ``{"a": "1", "b": ["2", "3"]}`` for ``a=1&b=2&b=3``.
    """
    query: QueryInput = {}
    for key in params:
        values = params.getlist(key)
        query[key] = values[0] if len(values) == 1 else values
    return query


def get_query(request: Request) -> QueryInput:
    """Return the flattened query string of a request."""
    return flatten_query(request.query_params)


async def read_body(request: Request, max_body_size: int, signal: AbortSignal) -> bytes:
    """Read a request body, enforcing a size limit.

    Args:
        request: The incoming request.
        max_body_size: Maximum body size in bytes.
        signal: Aborted when the limit is exceeded or the client disconnects.

    Returns:
        bytes: The raw body.

    Raises:
        RpcError: PAYLOAD_TOO_LARGE above the limit, CLIENT_CLOSED_REQUEST when
            the client disconnects mid-read.
    """
    content_length = request.headers.get("content-length")
    if content_length and content_length.isdigit() and int(content_length) > max_body_size:
        signal.abort(BODY_TOO_LARGE_REASON)
        raise RpcError(ErrorCode.PAYLOAD_TOO_LARGE, BODY_TOO_LARGE_REASON)

    body = bytearray()
    try:
        async for chunk in request.stream():
            body.extend(chunk)
            if len(body) > max_body_size:
                signal.abort(BODY_TOO_LARGE_REASON)
                raise RpcError(ErrorCode.PAYLOAD_TOO_LARGE, BODY_TOO_LARGE_REASON)
    except ClientDisconnect as exc:
        signal.abort(CLIENT_DISCONNECTED_REASON)
        raise RpcError(ErrorCode.CLIENT_CLOSED_REQUEST, cause=exc) from exc
    return bytes(body)


def parse_body(raw: bytes, media_type: str) -> Any:  # noqa: ANN401 - arbitrary JSON
    """Parse a request body.

    Args:
        raw: The raw body.
        media_type: JSON or form-urlencoded.

    Returns:
        Any: The parsed body; an empty body parses to ``{}``.

    Raises:
        RpcError: PARSE_ERROR when the body is malformed.
    """
    if not raw.strip():
        return {}

    try:
        if media_type == FORM_CONTENT_TYPE:
            return flatten_query(QueryParams(raw.decode()))
        return orjson.loads(raw)
    except (orjson.JSONDecodeError, UnicodeDecodeError) as exc:
        raise RpcError(ErrorCode.PARSE_ERROR, "Failed to parse request body", exc) from exc


async def get_body(
    request: Request, media_type: str, max_body_size: int, signal: AbortSignal
) -> Any:  # noqa: ANN401 - arbitrary JSON
    """Read and parse a request body."""
    return parse_body(await read_body(request, max_body_size, signal), media_type)


def wrap_array_fields(schema: Any, data: dict[str, Any]) -> dict[str, Any]:  # noqa: ANN401
    """Wrap single query values of array-shaped fields into lists.

    ``?tag=a`` yields ``{"tag": "a"}``; a field declared ``tag: list[str]``
    needs ``{"tag": ["a"]}``.

    Args:
        schema: The procedure's input schema.
        data: Flattened query input.

    Returns:
        dict[str, Any]: ``data`` with array values wrapped.
    """
    for key, field in object_fields(schema).items():
        if key in data and not isinstance(data[key], list) and is_array_like(field):
            data[key] = [data[key]]
    return data

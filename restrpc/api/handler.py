"""Request dispatch pipeline.

``OpenApiHttpHandler`` serves a procedure router over REST. Each request goes
through the same sequence:

1. **Resolve**: look the (method, path) pair up in the route index
2. **Negotiate**: body methods must carry a supported content type
3. **Gather**: read the body or the query string, merge path parameters
4. **Invoke**: build the context, validate input, call the resolver,
   validate output
5. **Respond**: render the output, or turn any failure into an error body

Nothing raised during dispatch escapes: every failure becomes a JSON error
response with the status of its error code.

The handler can be mounted as a standalone ASGI app, wrapped around another
app with ``OpenApiMiddleware``, or used through ``create_app``.
"""

import inspect
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from loguru import logger
from pydantic import ValidationError
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import Receive, Scope, Send

from restrpc.api.constants import HTTP_200_OK, HTTP_204_NO_CONTENT
from restrpc.api.input import check_content_type, get_body, get_query, wrap_array_fields
from restrpc.api.utils.responses import ORJSONResponse
from restrpc.core.config import HandlerConfig
from restrpc.core.constants import BODYLESS_METHODS, DEFAULT_MAX_BODY_SIZE, JSON_CONTENT_TYPE
from restrpc.core.context import AbortSignal
from restrpc.core.error_context import sanitize_error_context
from restrpc.core.exceptions import ErrorCode, RpcError, get_error_from_unknown
from restrpc.core.types import HeaderMap, JsonValue, MaybeAwaitable
from restrpc.openapi.generator import GenerateOpenApiDocumentOptions, generate_openapi_document
from restrpc.procedures.caller import INPUT_VALIDATION_FAILED, CallInfo, call_procedure
from restrpc.procedures.procedure import ProcedureKind, Router
from restrpc.routing.index import RouteIndex, RouteMatch
from restrpc.routing.paths import normalize_path
from restrpc.schema.shapes import is_object_like, is_void_like, unwrap

type CallNext = Callable[[Request], Awaitable[Response]]


@dataclass(frozen=True, slots=True)
class ResponseMeta:
    """Status and headers chosen by the response-metadata hook."""

    status: int | None = None
    headers: HeaderMap = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class ResponseMetaInfo:
    """What the response-metadata hook sees about a finished call."""

    kind: ProcedureKind | None
    paths: list[str] | None
    ctx: Any
    data: list[Any]
    errors: list[RpcError]
    info: CallInfo | None


@dataclass(frozen=True, slots=True)
class ErrorInfo:
    """What the error hook and the error formatter see about a failed call."""

    error: RpcError
    kind: ProcedureKind | None
    path: str | None
    input: Any
    ctx: Any
    request: Request


type ContextFactory = Callable[[Request, Response, CallInfo], MaybeAwaitable[Any]]
type ResponseMetaHook = Callable[[ResponseMetaInfo], MaybeAwaitable[ResponseMeta | None]]
type ErrorHook = Callable[[ErrorInfo], MaybeAwaitable[None]]
type ErrorFormatter = Callable[[ErrorInfo], MaybeAwaitable[Mapping[str, Any] | None]]


async def _maybe_await[T](value: MaybeAwaitable[T]) -> T:
    if inspect.isawaitable(value):
        return await value
    return value


def get_route_path(request: Request) -> str:
    """Return the normalized request path, relative to the mount point."""
    path: str = request.scope["path"]
    root_path: str = request.scope.get("root_path", "")
    if root_path and path.startswith(root_path):
        path = path[len(root_path) :]
    return normalize_path(path)


def get_error_issues(error: RpcError) -> list[dict[str, Any]] | None:
    """Return the input validation issues carried by an error, if any."""
    if error.code is not ErrorCode.BAD_REQUEST or not isinstance(error.cause, ValidationError):
        return None
    return [
        {"message": issue["msg"], "code": issue["type"], "path": list(issue["loc"])}
        for issue in error.cause.errors(include_url=False)
    ]


class OpenApiHttpHandler:
    """Serve a procedure router over REST.

    Args:
        router: The router to serve.
        create_context: Builds the context passed to resolvers from the
            request, a response whose headers are copied to the final
            response, and the call info. May be async.
        response_meta: Chooses the status and headers of every response.
        on_error: Called with every failure before the error response is built.
        error_formatter: Returns extra top-level fields for error bodies.
        max_body_size: Maximum request body size in bytes.
        coerce_scalars: Accept numbers, booleans and dates carried as strings.
        validate_router: Generate the OpenAPI document at construction so an
            invalid router fails immediately.

    Raises:
        RouterDefinitionError: If the router cannot be indexed or validated.
    """

    def __init__(
        self,
        router: Router,
        *,
        create_context: ContextFactory | None = None,
        response_meta: ResponseMetaHook | None = None,
        on_error: ErrorHook | None = None,
        error_formatter: ErrorFormatter | None = None,
        max_body_size: int = DEFAULT_MAX_BODY_SIZE,
        coerce_scalars: bool = True,
        validate_router: bool = True,
    ) -> None:
        if validate_router:
            generate_openapi_document(
                router,
                GenerateOpenApiDocumentOptions(
                    title="", version="", base_url="", coerce_scalars=coerce_scalars
                ),
            )
            logger.debug("Router validated")

        self.router = router
        self.index = RouteIndex.build(router)
        self.create_context = create_context
        self.response_meta = response_meta
        self.on_error = on_error
        self.error_formatter = error_formatter
        self.max_body_size = max_body_size
        self.coerce_scalars = coerce_scalars

    @classmethod
    def from_config(
        cls, router: Router, config: HandlerConfig, **hooks: Any
    ) -> "OpenApiHttpHandler":
        """Build a handler from ``HandlerConfig`` settings.

        Args:
            router: The router to serve.
            config: Dispatch configuration.
            **hooks: ``create_context``, ``response_meta``, ``on_error``,
                ``error_formatter``.

        Returns:
            OpenApiHttpHandler: The handler.
        """
        return cls(
            router,
            max_body_size=config.max_body_size,
            coerce_scalars=config.coerce_scalars,
            validate_router=bool(config.validate_router),
            **hooks,
        )

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        """ASGI entry point."""
        if scope["type"] == "lifespan":
            await self._lifespan(receive, send)
            return
        if scope["type"] != "http":
            return

        response = await self.handle(Request(scope, receive))
        await response(scope, receive, send)

    async def _lifespan(self, receive: Receive, send: Send) -> None:
        while True:
            message = await receive()
            if message["type"] == "lifespan.startup":
                await send({"type": "lifespan.startup.complete"})
            elif message["type"] == "lifespan.shutdown":
                await send({"type": "lifespan.shutdown.complete"})
                return

    async def handle(self, request: Request, call_next: CallNext | None = None) -> Response:
        """Dispatch one request.

        Args:
            request: The incoming request.
            call_next: Continuation called when no procedure matches.

        Returns:
            Response: The procedure's response, an error response, or the
                continuation's response.
        """
        method = request.method
        match = self.index.lookup(method, get_route_path(request))

        if match is None:
            if call_next is not None:
                return await call_next(request)
            # Can be used for warmup
            if method == "HEAD":
                return Response(status_code=HTTP_204_NO_CONTENT)

        return await self._dispatch(request, match)

    async def _dispatch(self, request: Request, match: RouteMatch | None) -> Response:
        route = match.route if match is not None else None
        sub_response = Response()
        del sub_response.headers["content-length"]
        signal = AbortSignal()
        data_input: Any = None
        ctx: Any = None
        info: CallInfo | None = None

        try:
            if match is None or route is None:
                raise RpcError(ErrorCode.NOT_FOUND, "Not found")

            proc = route.procedure
            content_type = request.headers.get("content-type")
            use_body = request.method not in BODYLESS_METHODS
            media_type = None
            if use_body:
                media_type = check_content_type(
                    content_type, route.openapi.content_types or [JSON_CONTENT_TYPE]
                )

            input_schema = proc.input_schema
            unwrapped = unwrap(input_schema, unwrap_transforms=True)
            # Input stays None for void inputs
            if input_schema is None or not is_void_like(unwrapped):
                if media_type is not None:
                    raw = await get_body(request, media_type, self.max_body_size, signal)
                else:
                    raw = get_query(request)
                if isinstance(raw, dict):
                    data_input = {**raw, **match.path_params}
                    if media_type is None and is_object_like(unwrapped):
                        wrap_array_fields(unwrapped, data_input)
                else:
                    data_input = raw

            info = CallInfo(
                kind=proc.kind,
                path=route.procedure_path,
                signal=signal,
                url=str(request.url),
                accept=request.headers.get("accept"),
                content_type=content_type,
            )
            if self.create_context is not None:
                ctx = await _maybe_await(self.create_context(request, sub_response, info))

            with logger.contextualize(procedure=route.procedure_path):
                data = await call_procedure(
                    proc, ctx, data_input, coerce_scalars=self.coerce_scalars
                )

            meta = await self._get_response_meta(
                ResponseMetaInfo(
                    kind=proc.kind,
                    paths=[route.procedure_path],
                    ctx=ctx,
                    data=[data],
                    errors=[],
                    info=info,
                )
            )
            return self._build_response(
                meta.status or HTTP_200_OK, meta.headers, data, sub_response
            )

        except Exception as cause:  # noqa: BLE001 - every failure becomes a response
            error = get_error_from_unknown(cause)
            kind = route.kind if route is not None else None
            path = route.procedure_path if route is not None else None
            self._log_error(error, path, data_input)

            error_info = ErrorInfo(
                error=error, kind=kind, path=path, input=data_input, ctx=ctx, request=request
            )
            if self.on_error is not None:
                try:
                    await _maybe_await(self.on_error(error_info))
                except Exception:  # noqa: BLE001
                    logger.exception("Error hook failed for procedure {}", path)

            try:
                meta = await self._get_response_meta(
                    ResponseMetaInfo(
                        kind=kind,
                        paths=[path] if path is not None else None,
                        ctx=ctx,
                        data=[],
                        errors=[error],
                        info=info,
                    )
                )
            except Exception:  # noqa: BLE001
                logger.exception("Response metadata hook failed for procedure {}", path)
                meta = ResponseMeta()
            body = await self._get_error_body(error_info)
            return self._build_response(
                meta.status or error.http_status, meta.headers, body, sub_response
            )

    async def _get_response_meta(self, meta_info: ResponseMetaInfo) -> ResponseMeta:
        if self.response_meta is None:
            return ResponseMeta()
        return await _maybe_await(self.response_meta(meta_info)) or ResponseMeta()

    async def _get_error_body(self, error_info: ErrorInfo) -> dict[str, JsonValue]:
        error = error_info.error
        formatted: Mapping[str, Any] = {}
        if self.error_formatter is not None:
            try:
                formatted = await _maybe_await(self.error_formatter(error_info)) or {}
            except Exception:  # noqa: BLE001
                logger.exception("Error formatter failed for procedure {}", error_info.path)
                formatted = {}

        issues = get_error_issues(error)
        if issues is not None:
            message = INPUT_VALIDATION_FAILED
        else:
            message = formatted.get("message", error.message)

        body: dict[str, JsonValue] = {**formatted, "message": message, "code": str(error.code)}
        if issues is not None:
            body["issues"] = issues
        return body

    def _log_error(
        self, error: RpcError, path: str | None, data_input: Any  # noqa: ANN401
    ) -> None:
        context = sanitize_error_context(error, {"input": data_input})
        if error.is_expected:
            logger.warning(
                "Procedure {} failed: {}",
                path or "<unmatched>",
                error.message,
                procedure=path,
                **context,
            )
        else:
            logger.opt(exception=error).error(
                "Procedure {} raised an unexpected error",
                path or "<unmatched>",
                procedure=path,
                **context,
            )

    def _build_response(
        self,
        status: int,
        headers: Mapping[str, str],
        body: Any,  # noqa: ANN401 - JSON-compatible data
        sub_response: Response,
    ) -> Response:
        response = ORJSONResponse(content=body, status_code=status)
        response.headers.raw.extend(sub_response.headers.raw)
        for key, value in headers.items():
            response.headers[key] = value
        return response

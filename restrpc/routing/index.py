"""Route index mapping (method, path) pairs to procedures.

The index is built once from a router and never mutated. Routes are kept in
one list per HTTP method, in router declaration order, and a lookup returns
the first route whose pattern matches. When templates overlap
(``/users/{id}`` and ``/users/me``) the one declared first wins.
"""

import re
from collections.abc import Iterator, Mapping
from dataclasses import dataclass

from loguru import logger

from restrpc.core.constants import OPENAPI_METHODS
from restrpc.core.exceptions import RouterDefinitionError
from restrpc.core.types import PathParams
from restrpc.procedures.meta import OpenApiMeta, OpenApiProcedure, iter_openapi_procedures
from restrpc.procedures.procedure import Procedure, ProcedureKind, Router
from restrpc.routing.paths import get_path_parameters, get_path_regexp, normalize_path

INVALID_METHOD_MESSAGE = "Method must be GET, POST, PATCH, PUT or DELETE"


@dataclass(frozen=True, slots=True)
class CompiledRoute:
    """A procedure bound to an HTTP method and a compiled path template."""

    method: str
    path: str
    pattern: re.Pattern[str]
    parameters: tuple[str, ...]
    procedure_path: str
    procedure: Procedure
    openapi: OpenApiMeta

    @property
    def kind(self) -> ProcedureKind:
        """Kind of the routed procedure."""
        return self.procedure.kind


@dataclass(frozen=True, slots=True)
class RouteMatch:
    """Result of a successful lookup."""

    route: CompiledRoute
    path_params: PathParams


def get_route_method(entry: OpenApiProcedure) -> str:
    """Return the validated HTTP method of a procedure.

    Raises:
        RouterDefinitionError: If the method is not one of ``OPENAPI_METHODS``.
    """
    method = entry.openapi.method
    if method not in OPENAPI_METHODS:
        raise RouterDefinitionError(INVALID_METHOD_MESSAGE)
    return method


def compile_route(entry: OpenApiProcedure) -> CompiledRoute:
    """Compile the path template of a procedure.

    Args:
        entry: Procedure with its effective metadata.

    Returns:
        CompiledRoute: The compiled route.

    Raises:
        RouterDefinitionError: If the method or the path template is invalid.
    """
    method = get_route_method(entry)
    path = normalize_path(entry.openapi.path or "")
    try:
        pattern = get_path_regexp(path)
    except (ValueError, re.error) as exc:
        raise RouterDefinitionError(str(exc), exc) from exc

    return CompiledRoute(
        method=method,
        path=path,
        pattern=pattern,
        parameters=tuple(get_path_parameters(path)),
        procedure_path=entry.path,
        procedure=entry.procedure,
        openapi=entry.openapi,
    )


class RouteIndex:
    """Ordered per-method lists of compiled routes.

    Args:
        routes: Compiled routes keyed by HTTP method, in priority order.
    """

    def __init__(self, routes: Mapping[str, tuple[CompiledRoute, ...]]) -> None:
        self._routes = dict(routes)

    @classmethod
    def build(cls, router: Router) -> "RouteIndex":
        """Index every enabled, non-subscription procedure of a router.

        Args:
            router: The router to index.

        Returns:
            RouteIndex: The index.

        Raises:
            RouterDefinitionError: On an invalid method or path template, or
                when two procedures share a method and a normalized path, compared
                without regard to case.
        """
        routes: dict[str, list[CompiledRoute]] = {}
        seen: set[tuple[str, str]] = set()

        for entry in iter_openapi_procedures(router):
            if entry.kind is ProcedureKind.SUBSCRIPTION:
                continue

            try:
                route = compile_route(entry)
                key = (route.method, route.path.lower())
                if key in seen:
                    msg = f"Duplicate procedure defined for route {route.method} {route.path}"
                    raise RouterDefinitionError(msg)
            except RouterDefinitionError as error:
                raise error.with_prefix(entry.name) from error.cause

            seen.add(key)
            routes.setdefault(route.method, []).append(route)
            logger.debug(
                "Indexed {} {} -> {}", route.method, route.path, route.procedure_path
            )

        logger.info("Route index built with {} routes", len(seen))
        return cls({method: tuple(items) for method, items in routes.items()})

    def lookup(self, method: str, path: str) -> RouteMatch | None:
        """Find the procedure serving a request.

        Args:
            method: Request method. ``HEAD`` never matches.
            path: Normalized request path.

        Returns:
            RouteMatch | None: The first matching route and its path parameters.
        """
        for route in self._routes.get(method, ()):
            match = route.pattern.match(path)
            if match is not None:
                return RouteMatch(route=route, path_params=match.groupdict())
        return None

    def __iter__(self) -> Iterator[CompiledRoute]:
        for method_routes in self._routes.values():
            yield from method_routes

    def __len__(self) -> int:
        return sum(len(method_routes) for method_routes in self._routes.values())

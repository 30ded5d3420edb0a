"""Unit tests for restrpc/routing/index.py."""

import re

import pytest
from pydantic import BaseModel

from restrpc.core.exceptions import RouterDefinitionError
from restrpc.procedures.procedure import Router, procedure, router
from restrpc.routing.index import INVALID_METHOD_MESSAGE, RouteIndex


class IdInput(BaseModel):
    """Input carrying a path parameter."""

    id: str


def _query(path: str, method: str = "GET") -> object:
    return (
        procedure.meta(openapi={"method": method, "path": path})
        .input(IdInput)
        .query(lambda _ctx, data: data)
    )


def _route_summary(index: RouteIndex) -> list[tuple[str, str, str]]:
    return [(route.method, route.path, route.procedure_path) for route in index]


@pytest.mark.unit
class TestRouteIndexBuild:
    """Test index construction."""

    def test_indexes_procedures_with_derived_defaults(self) -> None:
        """Queries default to GET and mutations to POST at ``/{procedure_path}``."""
        tree: Router = router(
            users=router(
                list=procedure.query(lambda _ctx, _data: []),
                create=procedure.mutation(lambda _ctx, _data: None),
            )
        )

        index = RouteIndex.build(tree)

        assert _route_summary(index) == [
            ("GET", "/users.list", "users.list"),
            ("POST", "/users.create", "users.create"),
        ]
        assert len(index) == 2

    def test_duplicate_after_normalization_names_second_procedure(self) -> None:
        """``/procedure`` and ``/procedure/`` collide on the same method."""
        tree = router(
            first=procedure.meta(openapi={"method": "GET", "path": "/procedure"}).query(
                lambda _ctx, _data: None
            ),
            second=procedure.meta(openapi={"method": "GET", "path": "/procedure/"}).query(
                lambda _ctx, _data: None
            ),
        )

        with pytest.raises(RouterDefinitionError) as exc_info:
            RouteIndex.build(tree)

        assert exc_info.value.message == (
            "[query.second] - Duplicate procedure defined for route GET /procedure"
        )

    def test_duplicate_differing_only_in_case(self) -> None:
        """Paths are matched case-insensitively, so they collide case-insensitively."""
        tree = router(
            first=procedure.meta(openapi={"method": "GET", "path": "/Procedure"}).query(
                lambda _ctx, _data: None
            ),
            second=procedure.meta(openapi={"method": "GET", "path": "/procedure"}).query(
                lambda _ctx, _data: None
            ),
        )

        with pytest.raises(RouterDefinitionError) as exc_info:
            RouteIndex.build(tree)

        assert exc_info.value.message == (
            "[query.second] - Duplicate procedure defined for route GET /procedure"
        )

    def test_same_path_on_different_methods_is_allowed(self) -> None:
        """Duplicate detection is per method."""
        tree = router(
            read=_query("/items/{id}", "GET"),
            remove=_query("/items/{id}", "DELETE"),
        )

        index = RouteIndex.build(tree)

        assert len(index) == 2

    def test_subscriptions_are_skipped(self) -> None:
        """Subscriptions are never routed, even when enabled."""
        tree = router(
            events=procedure.subscription(lambda _ctx, _data: None),
            ping=procedure.query(lambda _ctx, _data: "pong"),
        )

        index = RouteIndex.build(tree)

        assert _route_summary(index) == [("GET", "/ping", "ping")]

    def test_disabled_procedures_are_skipped(self) -> None:
        """``enabled: False`` removes a procedure from the index."""
        tree = router(hidden=procedure.meta(openapi={"enabled": False}).query(lambda *_: None))

        assert len(RouteIndex.build(tree)) == 0

    def test_invalid_method_is_rejected(self) -> None:
        """Only the five OpenAPI methods can be routed."""
        tree = router(options=procedure.meta(openapi={"method": "OPTIONS"}).query(lambda *_: None))

        with pytest.raises(RouterDefinitionError, match=re.escape(INVALID_METHOD_MESSAGE)):
            RouteIndex.build(tree)

    def test_invalid_template_is_prefixed(self) -> None:
        """Template errors name the offending procedure."""
        tree = router(friends=_query("/users/{id}/friends/{id}"))

        with pytest.raises(RouterDefinitionError) as exc_info:
            RouteIndex.build(tree)

        assert exc_info.value.message == (
            '[query.friends] - Path parameter "id" is defined more than once'
        )
        assert isinstance(exc_info.value.cause, ValueError)

    def test_override_without_path_routes_to_root(self) -> None:
        """An override block without a path is served at ``/``."""
        tree = router(
            root=procedure.meta(openapi={"override": True, "method": "GET"}).query(
                lambda *_: None
            )
        )

        assert _route_summary(RouteIndex.build(tree)) == [("GET", "/", "root")]

    def test_build_is_deterministic(self, app_router: Router) -> None:
        """Building twice from the same router yields the same routes."""
        assert _route_summary(RouteIndex.build(app_router)) == _route_summary(
            RouteIndex.build(app_router)
        )


@pytest.mark.unit
class TestRouteIndexLookup:
    """Test route resolution."""

    def test_extracts_path_parameters(self) -> None:
        """Named groups become the path parameter map."""
        index = RouteIndex.build(router(get=_query("/users/{id}")))

        match = index.lookup("GET", "/users/42")

        assert match is not None
        assert match.route.procedure_path == "get"
        assert match.path_params == {"id": "42"}

    def test_first_declared_route_wins(self) -> None:
        """Overlapping templates resolve in declaration order."""
        tree = router(
            byId=_query("/users/{id}"),
            me=procedure.meta(openapi={"method": "GET", "path": "/users/me"}).query(
                lambda *_: None
            ),
        )
        index = RouteIndex.build(tree)

        match = index.lookup("GET", "/users/me")

        assert match is not None
        assert match.route.procedure_path == "byId"
        assert match.path_params == {"id": "me"}

    @pytest.mark.parametrize(
        ("method", "path"),
        [("POST", "/users/42"), ("HEAD", "/users/42"), ("GET", "/users"), ("GET", "/other")],
    )
    def test_returns_none_without_match(self, method: str, path: str) -> None:
        """Lookups are per method; HEAD never matches."""
        index = RouteIndex.build(router(get=_query("/users/{id}")))

        assert index.lookup(method, path) is None

    def test_trailing_newline_does_not_match(self) -> None:
        """A path followed by a newline is not the same path."""
        index = RouteIndex.build(router(hello=_query("/say-hello")))

        assert index.lookup("GET", "/say-hello\n") is None
        assert index.lookup("GET", "/say-hello") is not None

    def test_lookup_is_case_insensitive(self) -> None:
        """Request paths match templates regardless of case."""
        index = RouteIndex.build(router(get=_query("/Users/{id}")))

        match = index.lookup("GET", "/users/ABC")

        assert match is not None
        assert match.path_params == {"id": "ABC"}

"""Access policy for every HTTP operation, keyed by route name.

Each route is registered with ``name=<operation id>`` and must have an
entry here; ``verify_route_policies`` enforces that at startup.
"""

from collections.abc import Iterable, Iterator
from typing import Any

from fastapi import FastAPI
from fastapi.routing import APIRoute

from inventory_api.models.user import Role
from inventory_api.services.authorization import Access, RoutePolicy

PUBLIC = RoutePolicy(Access.PUBLIC)
ANY_USER = RoutePolicy(Access.USER)
ADMIN_ONLY = RoutePolicy(Access.USER, frozenset({Role.ADMINISTRATOR}))
CLIENT_ONLY = RoutePolicy(Access.CLIENT)

ROUTE_POLICIES: dict[str, RoutePolicy] = {
    "root": PUBLIC,
    "health": PUBLIC,
    "auth.signup": PUBLIC,
    "auth.login": PUBLIC,
    "auth.logout": RoutePolicy(Access.LOGOUT),
    "auth.role": ANY_USER,
    "auth.admin": ADMIN_ONLY,
    "mobile.login": PUBLIC,
    "mobile.me": CLIENT_ONLY,
}

# Framework-provided documentation routes (only mounted in debug mode)
_FRAMEWORK_ROUTES = {"openapi", "swagger_ui_html", "swagger_ui_redirect", "redoc_html"}


def get_policy(operation_id: str) -> RoutePolicy:
    """Look up the policy for an operation; unknown ids are a programming error."""
    try:
        return ROUTE_POLICIES[operation_id]
    except KeyError:
        raise KeyError(f"No access policy declared for operation {operation_id!r}") from None


def _iter_api_routes(routes: Iterable[Any]) -> Iterator[APIRoute]:
    """Yield every ``APIRoute``, descending into mounts and included routers.

    Depending on the FastAPI version an included router is either flattened
    into its parent or kept as a nested object exposing ``routes`` (directly
    or on a wrapped ``router``).
    """
    for route in routes:
        if isinstance(route, APIRoute):
            yield route
            continue
        nested = getattr(route, "routes", None)
        if nested is None:
            nested = getattr(getattr(route, "router", None), "routes", None)
        if nested:
            yield from _iter_api_routes(nested)


def verify_route_policies(app: FastAPI) -> None:
    """Fail fast when routes and the policy table disagree.

    Raises:
        RuntimeError: a route has no policy, or a policy names no route
    """
    route_names = {
        route.name
        for route in _iter_api_routes(app.routes)
        if route.name not in _FRAMEWORK_ROUTES
    }
    missing = sorted(route_names - ROUTE_POLICIES.keys())
    unused = sorted(ROUTE_POLICIES.keys() - route_names)

    problems = []
    if missing:
        problems.append(f"routes without an access policy: {', '.join(missing)}")
    if unused:
        problems.append(f"policies without a route: {', '.join(unused)}")
    if problems:
        raise RuntimeError("Route policy table is incomplete - " + "; ".join(problems))

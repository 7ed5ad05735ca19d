# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/tessera-python/LICENSE
# ==============================================================================

"""Endpoint declarations and their ASGI adapters.

Route matching is Starlette's job.  This module only describes endpoints
(pattern plus per-verb handlers) and adapts handlers to ASGI applications so
Starlette can dispatch to them.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING

from starlette.routing import Route

from .context import HttpContext


if TYPE_CHECKING:  # pragma: no cover - typing only
    from starlette.types import ASGIApp, Receive, Scope, Send

    from .types import HttpHandler


@dataclass(slots=True)
class RequestDelegate:
    """ASGI adapter that runs a handler against a fresh :class:`HttpContext`."""

    handler: HttpHandler
    allowed_scopes: tuple[str, ...] = ("http",)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        scope_type = scope.get("type")
        if scope_type not in self.allowed_scopes:
            allowed = ", ".join(self.allowed_scopes)
            message = f"Tessera handlers only serve ASGI scopes: {allowed} (got {scope_type!r})."
            raise TypeError(message)

        ctx = HttpContext(scope, receive, send)
        await self.handler(ctx)
        ctx.log_incomplete()


def request_delegate(handler: HttpHandler) -> RequestDelegate:
    return RequestDelegate(handler)


@dataclass(slots=True)
class FallbackDelegate:
    """Router default: serves unmatched ``http`` requests with ``handler``.

    Other scope types go to ``otherwise``, normally the router's own
    ``not_found`` (which closes unmatched websockets).
    """

    handler: HttpHandler
    otherwise: ASGIApp

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope.get("type") == "http":
            await RequestDelegate(self.handler)(scope, receive, send)
        else:
            await self.otherwise(scope, receive, send)


@dataclass(frozen=True, slots=True)
class HttpEndpoint:
    """A route pattern and the handlers bound to it, keyed by verb.

    A ``None`` verb accepts any method.
    """

    pattern: str
    handlers: tuple[tuple[str | None, HttpHandler], ...]

    @property
    def methods(self) -> list[str] | None:
        if any(method is None for method, _ in self.handlers):
            return None
        return [method for method, _ in self.handlers if method is not None]


@dataclass(slots=True)
class MethodDispatcher:
    """Pick the handler for the request verb, falling back to the any-verb handler."""

    endpoint: HttpEndpoint

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        handler = self._select(scope.get("method", "GET"))
        await RequestDelegate(handler)(scope, receive, send)

    def _select(self, method: str) -> HttpHandler:
        fallback: HttpHandler | None = None
        for verb, handler in self.endpoint.handlers:
            if verb == method:
                return handler
            if verb is None and fallback is None:
                fallback = handler
        if fallback is None and method == "HEAD":
            return self._select("GET")
        if fallback is None:
            # Starlette only routes declared verbs here.
            message = f"No handler for {method} {self.endpoint.pattern}"
            raise LookupError(message)
        return fallback


def route(method: str | None, pattern: str, handler: HttpHandler) -> HttpEndpoint:
    verb = method.upper() if method else None
    return HttpEndpoint(pattern, ((verb, handler),))


def all_(pattern: str, handlers: Iterable[tuple[str | None, HttpHandler]]) -> HttpEndpoint:
    """Bind several verbs on one pattern."""
    normalized = tuple((method.upper() if method else None, handler) for method, handler in handlers)
    return HttpEndpoint(pattern, normalized)


def any_(pattern: str, handler: HttpHandler) -> HttpEndpoint:
    return route(None, pattern, handler)


def get(pattern: str, handler: HttpHandler) -> HttpEndpoint:
    return route("GET", pattern, handler)


def head(pattern: str, handler: HttpHandler) -> HttpEndpoint:
    return route("HEAD", pattern, handler)


def post(pattern: str, handler: HttpHandler) -> HttpEndpoint:
    return route("POST", pattern, handler)


def put(pattern: str, handler: HttpHandler) -> HttpEndpoint:
    return route("PUT", pattern, handler)


def patch(pattern: str, handler: HttpHandler) -> HttpEndpoint:
    return route("PATCH", pattern, handler)


def delete(pattern: str, handler: HttpHandler) -> HttpEndpoint:
    return route("DELETE", pattern, handler)


def options(pattern: str, handler: HttpHandler) -> HttpEndpoint:
    return route("OPTIONS", pattern, handler)


def to_routes(endpoints: Sequence[HttpEndpoint]) -> list[Route]:
    """Convert endpoints to Starlette routes, merging endpoints that share a pattern."""
    merged: dict[str, list[tuple[str | None, HttpHandler]]] = {}
    for endpoint in endpoints:
        merged.setdefault(endpoint.pattern, []).extend(endpoint.handlers)

    routes: list[Route] = []
    for pattern, handlers in merged.items():
        endpoint = HttpEndpoint(pattern, tuple(handlers))
        routes.append(Route(pattern, MethodDispatcher(endpoint), methods=endpoint.methods))
    return routes


__all__ = [
    "FallbackDelegate",
    "HttpEndpoint",
    "MethodDispatcher",
    "RequestDelegate",
    "all_",
    "any_",
    "delete",
    "get",
    "head",
    "options",
    "patch",
    "post",
    "put",
    "request_delegate",
    "route",
    "to_routes",
]

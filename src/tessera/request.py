# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/tessera-python/LICENSE
# ==============================================================================

"""Read-only accessors over the request half of an :class:`HttpContext`."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any


if TYPE_CHECKING:  # pragma: no cover - typing only
    from starlette.datastructures import Headers, QueryParams

    from .context import HttpContext


def get_verb(ctx: HttpContext) -> str:
    return ctx.request.method.upper()


def get_headers(ctx: HttpContext) -> Headers:
    return ctx.request.headers


def get_query(ctx: HttpContext) -> QueryParams:
    return ctx.request.query_params


def get_query_string(ctx: HttpContext) -> str:
    """Return the raw query string including the leading ``?``, or ``""``."""
    query = ctx.request.url.query
    return f"?{query}" if query else ""


def get_route(ctx: HttpContext) -> dict[str, Any]:
    """Return the path parameters captured by the matched route."""
    return dict(ctx.request.path_params)


async def get_body_string(ctx: HttpContext, encoding: str = "utf-8") -> str:
    body = await ctx.request.body()
    return body.decode(encoding, errors="replace")


__all__ = ["get_body_string", "get_headers", "get_query", "get_query_string", "get_route", "get_verb"]

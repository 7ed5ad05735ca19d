# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/tessera-python/LICENSE
# ==============================================================================

"""Response construction combinators.

Two kinds of building blocks live here:

* **Modifiers** (``with_*``) are synchronous ``HttpContext -> HttpContext``
  functions that mutate status, headers or cookies.  They never write a body.
* **Handlers** (``of_*``, redirects, auth helpers) are async functions that
  end in exactly one terminal action: writing the body, redirecting, or
  completing an empty response.

Modifiers compose with :func:`chain`; a handler is obtained from any number of
modifiers plus one terminal handler with :func:`compose`::

    handler = compose(
        with_status_code(201),
        with_headers([("X-Request-Source", "api")]),
        of_json({"created": True}),
    )

Each step sees the context as left by every earlier step.  Header writes made
through :func:`with_headers` are first-write-wins.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from functools import reduce
from io import StringIO
from typing import TYPE_CHECKING, Any

from . import request as req
from .auth import AuthenticationProperties, Principal, resolve_authentication
from .context import CookieOptions, HttpContext
from .utils.serializer import DEFAULT_JSON_OPTIONS, JsonOptions, JsonSerializer


if TYPE_CHECKING:  # pragma: no cover - typing only
    from .types import HttpHandler, ResponseModifier


CONTENT_TYPE = "content-type"
CONTENT_LENGTH = "content-length"
CONTENT_DISPOSITION = "content-disposition"
LOCATION = "location"

TEXT_PLAIN_UTF8 = "text/plain; charset=utf-8"
TEXT_HTML_UTF8 = "text/html; charset=utf-8"
APPLICATION_JSON_UTF8 = "application/json; charset=utf-8"

_default_serializer = JsonSerializer()


# ==============================================================================
# Composition
# ==============================================================================


def _identity(ctx: HttpContext) -> HttpContext:
    return ctx


def chain(*modifiers: ResponseModifier) -> ResponseModifier:
    """Compose modifiers left to right into a single modifier."""
    if not modifiers:
        return _identity

    def _compose(first: ResponseModifier, second: ResponseModifier) -> ResponseModifier:
        return lambda ctx: second(first(ctx))

    return reduce(_compose, modifiers)


def compose(*steps: Callable[[HttpContext], Any]) -> HttpHandler:
    """Compose zero or more modifiers with one terminal handler.

    The last step is the terminal handler; every earlier step is a modifier
    applied in declaration order before it runs.
    """
    if not steps:
        raise TypeError("compose() requires a terminal handler")
    *modifiers, terminal = steps
    modify = chain(*modifiers)

    async def _handler(ctx: HttpContext) -> None:
        await terminal(modify(ctx))

    return _handler


# ==============================================================================
# Modifiers
# ==============================================================================


def with_headers(headers: Iterable[tuple[str, str]]) -> ResponseModifier:
    """Set each header that the response does not carry yet."""
    pairs = list(headers)

    def _modifier(ctx: HttpContext) -> HttpContext:
        for name, content in pairs:
            ctx.response.add_header(name, content)
        return ctx

    return _modifier


def with_content_length(content_length: int) -> ResponseModifier:
    return with_headers([(CONTENT_LENGTH, str(content_length))])


def with_content_type(content_type: str) -> ResponseModifier:
    return with_headers([(CONTENT_TYPE, content_type)])


def with_status_code(status_code: int) -> ResponseModifier:
    """Overwrite the status code. No range validation is performed."""

    def _modifier(ctx: HttpContext) -> HttpContext:
        ctx.response.set_status(status_code)
        return ctx

    return _modifier


def with_cookie(key: str, value: str, options: CookieOptions | None = None) -> ResponseModifier:
    """Append a cookie. Repeated calls append further ``Set-Cookie`` entries."""

    def _modifier(ctx: HttpContext) -> HttpContext:
        ctx.response.append_cookie(key, value, options)
        return ctx

    return _modifier


def with_cookie_options(options: CookieOptions, key: str, value: str) -> ResponseModifier:
    return with_cookie(key, value, options)


# ==============================================================================
# Terminal handlers
# ==============================================================================


async def of_empty(ctx: HttpContext) -> None:
    """Flush pending headers and complete the response with no body."""
    await ctx.response.complete()


@dataclass(frozen=True, slots=True)
class PermanentlyTo:
    url: str


@dataclass(frozen=True, slots=True)
class TemporarilyTo:
    url: str


RedirectType = PermanentlyTo | TemporarilyTo


def _redirect(redirect_type: RedirectType) -> HttpHandler:
    status_code = 301 if isinstance(redirect_type, PermanentlyTo) else 302

    async def _handler(ctx: HttpContext) -> None:
        ctx.response.set_status(status_code)
        ctx.response.set_header(LOCATION, redirect_type.url)
        await ctx.response.complete()

    return _handler


def redirect_permanently(url: str) -> HttpHandler:
    """Respond with a 301 redirect to ``url``."""
    return _redirect(PermanentlyTo(url))


def redirect_temporarily(url: str) -> HttpHandler:
    """Respond with a 302 redirect to ``url``."""
    return _redirect(TemporarilyTo(url))


async def _write_bytes(data: bytes, ctx: HttpContext) -> None:
    ctx.response.set_header(CONTENT_LENGTH, str(len(data)))
    await ctx.response.write(data)


def _write_bytes_handler(data: bytes) -> HttpHandler:
    async def _handler(ctx: HttpContext) -> None:
        await _write_bytes(data, ctx)

    return _handler


def of_binary(content_type: str, headers: Iterable[tuple[str, str]], data: bytes) -> HttpHandler:
    """Return ``data`` inline with the given content type.

    ``Content-Disposition: inline`` is placed ahead of ``headers``.
    """
    all_headers = [(CONTENT_DISPOSITION, "inline"), *headers]
    return compose(with_content_type(content_type), with_headers(all_headers), _write_bytes_handler(data))


def of_attachment(
    filename: str, content_type: str, headers: Iterable[tuple[str, str]], data: bytes
) -> HttpHandler:
    """Return ``data`` as an attachment, naming it when ``filename`` is non-empty."""
    if filename:
        content_disposition = f'attachment; filename="{filename}"'
    else:
        content_disposition = "attachment"
    all_headers = [(CONTENT_DISPOSITION, content_disposition), *headers]
    return compose(with_content_type(content_type), with_headers(all_headers), _write_bytes_handler(data))


def of_string(encoding: str, text: str | None) -> HttpHandler:
    """Encode ``text`` and write it as the body.

    ``None`` completes the response with an empty body instead of failing.
    """

    async def _handler(ctx: HttpContext) -> None:
        if text is None:
            await ctx.response.complete()
            return
        await _write_bytes(text.encode(encoding), ctx)

    return _handler


def of_plain_text(text: str | None) -> HttpHandler:
    return compose(with_content_type(TEXT_PLAIN_UTF8), of_string("utf-8", text))


def of_html_string(html: str | None) -> HttpHandler:
    return compose(with_content_type(TEXT_HTML_UTF8), of_string("utf-8", html))


def render_markup(document: Any) -> str:
    """Render ``document`` through the ``__html__`` protocol, falling back to ``str``."""
    render = getattr(document, "__html__", None)
    if callable(render):
        return str(render())
    return str(document)


def of_html(document: Any, *, renderer: Callable[[Any], str] = render_markup) -> HttpHandler:
    return of_html_string(renderer(document))


def of_json_options(options: JsonOptions, obj: Any) -> HttpHandler:
    """Serialize ``obj`` with ``options`` and return it as JSON.

    The payload is buffered so ``Content-Length`` is known before the body is
    sent.
    """

    async def _json_handler(ctx: HttpContext) -> None:
        serializer: JsonSerializer = ctx.get_service(JsonSerializer, _default_serializer)
        data = await serializer.serialize(obj, options)
        await _write_bytes(data, ctx)

    return compose(with_content_type(APPLICATION_JSON_UTF8), _json_handler)


def of_json(obj: Any) -> HttpHandler:
    return of_json_options(DEFAULT_JSON_OPTIONS, obj)


# ==============================================================================
# Authentication
# ==============================================================================


def sign_in_and_redirect(auth_scheme: str, principal: Principal, url: str) -> HttpHandler:
    """Sign ``principal`` in for ``auth_scheme`` then redirect (302) to ``url``."""
    return sign_in_options_and_redirect(auth_scheme, principal, None, url)


def sign_in_options_and_redirect(
    auth_scheme: str, principal: Principal, properties: AuthenticationProperties | None, url: str
) -> HttpHandler:
    redirect = redirect_temporarily(url)

    async def _handler(ctx: HttpContext) -> None:
        # the redirect may carry cookies written by the sign-in
        await resolve_authentication(ctx).sign_in(ctx, auth_scheme, principal, properties)
        await redirect(ctx)

    return _handler


def sign_out_and_redirect(auth_scheme: str, url: str) -> HttpHandler:
    """Terminate the session for ``auth_scheme`` then redirect (302) to ``url``."""
    redirect = redirect_temporarily(url)

    async def _handler(ctx: HttpContext) -> None:
        await resolve_authentication(ctx).sign_out(ctx, auth_scheme)
        await redirect(ctx)

    return _handler


def challenge_with_redirect(auth_scheme: str, redirect_uri: str) -> HttpHandler:
    """Challenge ``auth_scheme``; the scheme completes the response.

    ``redirect_uri`` is forwarded for use after authentication succeeds.
    """

    async def _handler(ctx: HttpContext) -> None:
        properties = AuthenticationProperties(redirect_uri=redirect_uri)
        await resolve_authentication(ctx).challenge(ctx, auth_scheme, properties)

    return _handler


# ==============================================================================
# Diagnostics
# ==============================================================================


async def debug_request(ctx: HttpContext) -> None:
    """Echo the request line, headers and body back as plain text.

    Important: intended for debugging during development only. Never mount
    this in production.
    """
    verb = req.get_verb(ctx)
    headers = req.get_headers(ctx)
    body = await req.get_body_string(ctx)

    tab = "    "
    out = StringIO()
    out.write(f"{verb} {ctx.request.url.path}{req.get_query_string(ctx)}\n\n")
    out.write("Headers:\n")

    seen: set[str] = set()
    for key in headers.keys():
        if key in seen:
            continue
        seen.add(key)
        out.write(f"{tab}{key}\n")
        out.write(f"{tab}{tab}{', '.join(headers.getlist(key))}\n\n")

    out.write("\n")
    out.write(body)

    await of_plain_text(out.getvalue())(ctx)


__all__ = [
    "APPLICATION_JSON_UTF8",
    "PermanentlyTo",
    "RedirectType",
    "TEXT_HTML_UTF8",
    "TEXT_PLAIN_UTF8",
    "TemporarilyTo",
    "chain",
    "challenge_with_redirect",
    "compose",
    "debug_request",
    "of_attachment",
    "of_binary",
    "of_empty",
    "of_html",
    "of_html_string",
    "of_json",
    "of_json_options",
    "of_plain_text",
    "of_string",
    "redirect_permanently",
    "redirect_temporarily",
    "render_markup",
    "sign_in_and_redirect",
    "sign_in_options_and_redirect",
    "sign_out_and_redirect",
    "with_content_length",
    "with_content_type",
    "with_cookie",
    "with_cookie_options",
    "with_headers",
    "with_status_code",
]

# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/tessera-python/LICENSE
# ==============================================================================

"""Per-request exchange state.

An :class:`HttpContext` is created for every inbound HTTP request by
:class:`tessera.routing.RequestDelegate`.  It pairs the read-only Starlette
:class:`~starlette.requests.Request` with an :class:`HttpResponse` that buffers
status, headers and cookies until the single body write completes the
exchange.

Once a response is complete every further mutation raises
:class:`ResponseCompletedError`, so composing two terminal handlers fails at the
second one instead of corrupting the wire.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
import http.cookies
from email.utils import format_datetime
from typing import TYPE_CHECKING, Any, Literal

from starlette.datastructures import MutableHeaders
from starlette.requests import Request

from .utils import get_logger


if TYPE_CHECKING:  # pragma: no cover - typing only
    from starlette.types import Receive, Scope, Send

    from .server.builders import ServiceProvider


_logger = get_logger("tessera.context")


class ResponseCompletedError(RuntimeError):
    """Raised when a completed response is mutated or written again."""


@dataclass(frozen=True, slots=True)
class CookieOptions:
    """Attributes rendered into a ``Set-Cookie`` header."""

    max_age: int | None = None
    expires: datetime | str | int | None = None
    path: str | None = "/"
    domain: str | None = None
    secure: bool = False
    httponly: bool = False
    samesite: Literal["lax", "strict", "none"] | None = "lax"

    def render(self, key: str, value: str) -> str:
        cookie: http.cookies.BaseCookie[str] = http.cookies.SimpleCookie()
        cookie[key] = value
        if self.max_age is not None:
            cookie[key]["max-age"] = self.max_age
        if self.expires is not None:
            if isinstance(self.expires, datetime):
                cookie[key]["expires"] = format_datetime(self.expires, usegmt=True)
            else:
                cookie[key]["expires"] = self.expires
        if self.path is not None:
            cookie[key]["path"] = self.path
        if self.domain is not None:
            cookie[key]["domain"] = self.domain
        if self.secure:
            cookie[key]["secure"] = True
        if self.httponly:
            cookie[key]["httponly"] = True
        if self.samesite is not None:
            cookie[key]["samesite"] = self.samesite
        return cookie.output(header="").strip()


@dataclass(frozen=True, slots=True)
class Cookie:
    """A cookie queued on the response."""

    key: str
    value: str
    options: CookieOptions = CookieOptions()

    def header_value(self) -> str:
        return self.options.render(self.key, self.value)


class HttpResponse:
    """Response half of an exchange, bound to the ASGI ``send`` callable."""

    __slots__ = ("_send", "status_code", "headers", "cookies", "_started", "_completed")

    def __init__(self, send: Send) -> None:
        self._send = send
        self.status_code: int = 200
        self.headers = MutableHeaders()
        self.cookies: list[Cookie] = []
        self._started = False
        self._completed = False

    @property
    def started(self) -> bool:
        """Return ``True`` once the status line and headers were sent."""
        return self._started

    @property
    def completed(self) -> bool:
        return self._completed

    # ------------------------------------------------------------------
    # Metadata
    # ------------------------------------------------------------------

    def set_status(self, status_code: int) -> None:
        self._ensure_open("set status code")
        self.status_code = status_code

    def add_header(self, name: str, value: str) -> bool:
        """Add ``name`` unless it is already present.

        Returns ``True`` when the header was written.
        """
        self._ensure_open(f"add header {name!r}")
        if name in self.headers:
            return False
        self.headers.append(name, value)
        return True

    def set_header(self, name: str, value: str) -> None:
        """Write ``name``, replacing any existing value."""
        self._ensure_open(f"set header {name!r}")
        self.headers[name] = value

    def append_cookie(self, key: str, value: str, options: CookieOptions | None = None) -> None:
        self._ensure_open(f"append cookie {key!r}")
        self.cookies.append(Cookie(key, value, options or CookieOptions()))

    # ------------------------------------------------------------------
    # Body sink
    # ------------------------------------------------------------------

    async def write(self, body: bytes) -> None:
        """Send headers and ``body`` in one go, completing the response."""
        self._ensure_open("write body")
        await self._start()
        await self._send({"type": "http.response.body", "body": body, "more_body": False})
        self._completed = True

    async def complete(self) -> None:
        """Flush headers and finish the response without a body."""
        self._ensure_open("complete response")
        if "content-length" not in self.headers:
            self.headers.append("content-length", "0")
        await self.write(b"")

    async def _start(self) -> None:
        if self._started:
            return
        raw_headers = list(self.headers.raw)
        raw_headers.extend((b"set-cookie", cookie.header_value().encode("latin-1")) for cookie in self.cookies)
        await self._send({"type": "http.response.start", "status": self.status_code, "headers": raw_headers})
        self._started = True

    def _ensure_open(self, action: str) -> None:
        if self._completed:
            message = f"Cannot {action}: response already completed"
            raise ResponseCompletedError(message)


class HttpContext:
    """Mutable state for one in-flight request/response exchange.

    The context is owned by a single request task; it is never shared between
    concurrent tasks.
    """

    __slots__ = ("request", "response")

    def __init__(self, scope: Scope, receive: Receive, send: Send) -> None:
        self.request = Request(scope, receive)
        self.response = HttpResponse(send)

    @property
    def scope(self) -> Scope:
        return self.request.scope

    @property
    def services(self) -> ServiceProvider | None:
        """Return the application's service provider when hosted by Tessera."""
        app = self.request.scope.get("app")
        state = getattr(app, "state", None)
        return getattr(state, "services", None)

    def get_service(self, key: Any, default: Any = None) -> Any:
        """Resolve ``key`` from the hosted services, returning ``default`` when absent."""
        services = self.services
        if services is None:
            return default
        found = services.get_optional(key)
        return default if found is None else found

    @property
    def user(self) -> Any:
        """Return the user populated by authentication middleware, if any."""
        return self.request.scope.get("user")

    @property
    def is_authenticated(self) -> bool:
        user = self.user
        return bool(getattr(user, "is_authenticated", False))

    def log_incomplete(self) -> None:
        if not self.response.completed:
            _logger.warning(
                "handler returned without completing the response",
                extra={"method": self.request.method, "path": self.request.url.path},
            )


__all__ = [
    "Cookie",
    "CookieOptions",
    "HttpContext",
    "HttpResponse",
    "ResponseCompletedError",
]

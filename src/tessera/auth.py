# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/tessera-python/LICENSE
# ==============================================================================

"""Authentication collaborators used by the sign-in/out response handlers.

Key pieces:

* :class:`AuthenticationService` – scheme registry consulted by
  :func:`tessera.response.sign_in_and_redirect` and friends.
* :class:`AuthenticationHandler` protocol – per-scheme sign-in, sign-out,
  challenge and authentication.
* :class:`CookieAuthenticationHandler` – stores the principal in the Starlette
  session, so it requires ``SessionMiddleware`` (``HostBuilder.use_sessions``).
* :class:`ServiceAuthenticationBackend` – plugs the service into Starlette's
  ``AuthenticationMiddleware`` (``HostBuilder.use_authentication``).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol
from urllib.parse import urlencode

from starlette.authentication import AuthCredentials, AuthenticationBackend, BaseUser, UnauthenticatedUser

from .utils import get_logger


if TYPE_CHECKING:  # pragma: no cover - typing only
    from starlette.requests import HTTPConnection

    from .context import HttpContext


class AuthenticationError(Exception):
    """Raised when a scheme is unknown or cannot operate on the request."""


@dataclass(frozen=True, slots=True)
class Principal:
    """Authenticated identity and the claims attached to it."""

    name: str
    claims: dict[str, Any] = field(default_factory=dict)
    scopes: tuple[str, ...] = ()


@dataclass(slots=True)
class AuthenticationProperties:
    """Options forwarded to a scheme on sign-in, sign-out and challenge."""

    redirect_uri: str | None = None
    is_persistent: bool = False
    items: dict[str, str] = field(default_factory=dict)


class PrincipalUser(BaseUser):
    """Starlette user wrapper exposing a :class:`Principal`."""

    def __init__(self, principal: Principal, scheme: str) -> None:
        self.principal = principal
        self.scheme = scheme

    @property
    def is_authenticated(self) -> bool:
        return True

    @property
    def display_name(self) -> str:
        return self.principal.name

    @property
    def identity(self) -> str:
        return self.principal.name


class AuthenticationHandler(Protocol):
    async def authenticate(self, conn: HTTPConnection) -> Principal | None:
        """Return the principal carried by ``conn`` or ``None``."""

    async def sign_in(
        self, ctx: HttpContext, principal: Principal, properties: AuthenticationProperties | None = None
    ) -> None: ...

    async def sign_out(self, ctx: HttpContext, properties: AuthenticationProperties | None = None) -> None: ...

    async def challenge(self, ctx: HttpContext, properties: AuthenticationProperties | None = None) -> None: ...


class CookieAuthenticationHandler:
    """Session-cookie backed authentication scheme."""

    def __init__(self, scheme: str, *, login_path: str = "/login", return_url_parameter: str = "redirect_uri") -> None:
        self.scheme = scheme
        self.login_path = login_path
        self.return_url_parameter = return_url_parameter
        self.session_key = f"tessera.auth.{scheme}"

    async def authenticate(self, conn: HTTPConnection) -> Principal | None:
        if "session" not in conn.scope:
            return None
        stored = conn.session.get(self.session_key)
        if not stored:
            return None
        return Principal(name=stored["name"], claims=dict(stored.get("claims", {})), scopes=tuple(stored.get("scopes", ())))

    async def sign_in(
        self, ctx: HttpContext, principal: Principal, properties: AuthenticationProperties | None = None
    ) -> None:
        session = self._session(ctx)
        session[self.session_key] = {
            "name": principal.name,
            "claims": dict(principal.claims),
            "scopes": list(principal.scopes),
            "persistent": bool(properties and properties.is_persistent),
        }
        ctx.scope["user"] = PrincipalUser(principal, self.scheme)

    async def sign_out(self, ctx: HttpContext, properties: AuthenticationProperties | None = None) -> None:
        session = self._session(ctx)
        session.pop(self.session_key, None)
        ctx.scope["user"] = UnauthenticatedUser()

    async def challenge(self, ctx: HttpContext, properties: AuthenticationProperties | None = None) -> None:
        return_url = properties.redirect_uri if properties and properties.redirect_uri else ctx.request.url.path
        location = f"{self.login_path}?{urlencode({self.return_url_parameter: return_url})}"
        ctx.response.set_status(302)
        ctx.response.set_header("location", location)
        await ctx.response.complete()

    def _session(self, ctx: HttpContext) -> dict[str, Any]:
        if "session" not in ctx.scope:
            message = f"Cookie scheme {self.scheme!r} requires SessionMiddleware; declare use_sessions() first"
            raise AuthenticationError(message)
        return ctx.request.session


class AuthenticationService:
    """Dispatch authentication operations to registered schemes."""

    def __init__(self, default_scheme: str | None = None) -> None:
        self.default_scheme = default_scheme
        self._handlers: dict[str, AuthenticationHandler] = {}
        self._logger = get_logger("tessera.auth")

    @property
    def schemes(self) -> tuple[str, ...]:
        return tuple(self._handlers)

    def add_scheme(self, scheme: str, handler: AuthenticationHandler) -> AuthenticationService:
        self._handlers[scheme] = handler
        if self.default_scheme is None:
            self.default_scheme = scheme
        return self

    def handler_for(self, scheme: str | None = None) -> AuthenticationHandler:
        name = scheme or self.default_scheme
        if name is None or name not in self._handlers:
            raise AuthenticationError(f"No authentication handler registered for scheme {name!r}")
        return self._handlers[name]

    async def authenticate(self, conn: HTTPConnection, scheme: str | None = None) -> Principal | None:
        return await self.handler_for(scheme).authenticate(conn)

    async def sign_in(
        self,
        ctx: HttpContext,
        scheme: str,
        principal: Principal,
        properties: AuthenticationProperties | None = None,
    ) -> None:
        await self.handler_for(scheme).sign_in(ctx, principal, properties)
        self._logger.info("signed in", extra={"event": "auth.sign_in", "scheme": scheme, "subject": principal.name})

    async def sign_out(
        self, ctx: HttpContext, scheme: str, properties: AuthenticationProperties | None = None
    ) -> None:
        await self.handler_for(scheme).sign_out(ctx, properties)
        self._logger.info("signed out", extra={"event": "auth.sign_out", "scheme": scheme})

    async def challenge(
        self, ctx: HttpContext, scheme: str, properties: AuthenticationProperties | None = None
    ) -> None:
        self._logger.debug("issuing challenge", extra={"event": "auth.challenge", "scheme": scheme})
        await self.handler_for(scheme).challenge(ctx, properties)


class ServiceAuthenticationBackend(AuthenticationBackend):
    """Starlette backend that authenticates through an :class:`AuthenticationService`."""

    def __init__(self, service: AuthenticationService, scheme: str | None = None) -> None:
        self.service = service
        self.scheme = scheme

    async def authenticate(self, conn: HTTPConnection) -> tuple[AuthCredentials, BaseUser] | None:
        if not self.service.schemes:
            return None
        scheme = self.scheme or self.service.default_scheme
        principal = await self.service.authenticate(conn, scheme)
        if principal is None:
            return None
        return AuthCredentials(["authenticated", *principal.scopes]), PrincipalUser(principal, scheme or "")


def resolve_authentication(ctx: HttpContext) -> AuthenticationService:
    """Return the hosted :class:`AuthenticationService` or raise ``LookupError``."""
    services = ctx.services
    if services is None:
        raise LookupError("AuthenticationService is unavailable outside a Tessera host")
    service: AuthenticationService = services.get(AuthenticationService)
    return service


__all__ = [
    "AuthenticationError",
    "AuthenticationHandler",
    "AuthenticationProperties",
    "AuthenticationService",
    "CookieAuthenticationHandler",
    "Principal",
    "PrincipalUser",
    "ServiceAuthenticationBackend",
    "resolve_authentication",
]

# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/tessera-python/LICENSE
# ==============================================================================

"""Declarative host assembly.

:func:`web_host` returns an immutable :class:`HostBuilder`.  Stage
declarations (``logging``, ``add_service``, ``use_middleware``, ``use_if``,
``endpoints``, ``not_found``, ...) return a new builder and may be interleaved
freely.  Nothing is applied until :meth:`HostBuilder.build`, which always runs
the same sequence:

0. load configuration (a missing required source aborts here)
1. apply the logging stages to a :class:`LoggingBuilder`
2. register the core services, then apply the service stages
3. build the :class:`ServiceProvider` and the :class:`ApplicationBuilder`
4. apply the middleware stages in declaration order
5. attach endpoint routing after the middleware
6. attach the ``not_found`` handler as the routing fallback, if declared

:meth:`HostBuilder.serve` / :meth:`HostBuilder.run` then hand the application
to a transport (uvicorn by default) and block until shutdown::

    web_host(sys.argv[1:]) \\
        .use_request_logging() \\
        .endpoints([get("/", of_plain_text("hello"))]) \\
        .not_found(compose(with_status_code(404), of_plain_text("not found"))) \\
        .run()
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, replace
from enum import Enum
from functools import partial
import os
from typing import TYPE_CHECKING, Any

import anyio
import httpx
from starlette.middleware.authentication import AuthenticationMiddleware
from starlette.middleware.gzip import GZipMiddleware
from starlette.middleware.httpsredirect import HTTPSRedirectMiddleware
from starlette.middleware.sessions import SessionMiddleware

from .accumulator import Predicate, Stage, StageAccumulator
from .builders import PRODUCTION, ApplicationBuilder, LoggingBuilder, ServiceCollection
from .middleware import HSTSMiddleware, RequestLoggingMiddleware, StaticFilesMiddleware
from .transports import TransportFactory, UvicornTransport
from ..auth import AuthenticationService, CookieAuthenticationHandler, ServiceAuthenticationBackend
from ..config import ConfigBuilder, Configuration, ConfigurationError
from ..utils import JsonSerializer, get_logger


if TYPE_CHECKING:  # pragma: no cover - typing only
    from starlette.applications import Starlette

    from ..routing import HttpEndpoint
    from ..types import HttpHandler


ENV_ENVIRONMENT = "TESSERA_ENVIRONMENT"


class HostState(Enum):
    EMPTY = "empty"
    ACCUMULATING = "accumulating"
    FINALIZING = "finalizing"
    RUNNING = "running"


class HostStateError(RuntimeError):
    """Raised when a finalized host is modified or finalized again."""


@dataclass(frozen=True, slots=True)
class HostConfig:
    """Accumulated, not-yet-applied host configuration."""

    logging: StageAccumulator[LoggingBuilder] = StageAccumulator()
    services: StageAccumulator[ServiceCollection] = StageAccumulator()
    middleware: StageAccumulator[ApplicationBuilder] = StageAccumulator()
    endpoints: tuple[HttpEndpoint, ...] = ()
    not_found: HttpHandler | None = None
    configuration: ConfigBuilder | Configuration | None = None
    transport: TransportFactory = UvicornTransport

    @property
    def is_empty(self) -> bool:
        return self == HostConfig()


class _Lifecycle:
    __slots__ = ("state",)

    def __init__(self) -> None:
        self.state: HostState | None = None


def _core_services(configuration: Configuration) -> Stage[ServiceCollection]:
    def add_core_services(services: ServiceCollection) -> ServiceCollection:
        return (
            services.add_singleton(Configuration, configuration)
            .add_singleton(JsonSerializer, JsonSerializer())
            .add_singleton(AuthenticationService, AuthenticationService())
        )

    return add_core_services


class HostBuilder:
    """Immutable fluent builder that assembles and runs a Tessera application."""

    __slots__ = ("args", "config", "_lifecycle")

    def __init__(self, args: Sequence[str] = (), config: HostConfig | None = None) -> None:
        self.args = tuple(args)
        self.config = config or HostConfig()
        self._lifecycle = _Lifecycle()

    @property
    def state(self) -> HostState:
        if self._lifecycle.state is not None:
            return self._lifecycle.state
        return HostState.EMPTY if self.config.is_empty else HostState.ACCUMULATING

    def _with(self, **changes: Any) -> HostBuilder:
        if self._lifecycle.state is not None:
            raise HostStateError(f"Cannot declare stages on a host that is {self._lifecycle.state.value}")
        return HostBuilder(self.args, replace(self.config, **changes))

    # ------------------------------------------------------------------
    # Core stage declarations
    # ------------------------------------------------------------------

    def configuration(self, configuration: ConfigBuilder | Configuration) -> HostBuilder:
        """Use ``configuration`` instead of command-line arguments alone."""
        return self._with(configuration=configuration)

    def logging(self, fn: Stage[LoggingBuilder]) -> HostBuilder:
        return self._with(logging=self.config.logging.append(fn))

    def add_service(self, fn: Stage[ServiceCollection]) -> HostBuilder:
        return self._with(services=self.config.services.append(fn))

    def use_middleware(self, fn: Stage[ApplicationBuilder]) -> HostBuilder:
        return self._with(middleware=self.config.middleware.append(fn))

    def use_if(self, predicate: Predicate[ApplicationBuilder], fn: Stage[ApplicationBuilder]) -> HostBuilder:
        """Apply ``fn`` only when ``predicate`` holds for the application at build time."""
        return self._with(middleware=self.config.middleware.append_if(predicate, fn))

    def use_ifnot(self, predicate: Predicate[ApplicationBuilder], fn: Stage[ApplicationBuilder]) -> HostBuilder:
        return self._with(middleware=self.config.middleware.append_if_not(predicate, fn))

    def endpoints(self, endpoints: Iterable[HttpEndpoint]) -> HostBuilder:
        """Set the routed endpoints, replacing any declared earlier."""
        return self._with(endpoints=tuple(endpoints))

    def not_found(self, handler: HttpHandler) -> HostBuilder:
        """Set the catch-all handler run when no endpoint matches."""
        return self._with(not_found=handler)

    def transport(self, factory: TransportFactory) -> HostBuilder:
        return self._with(transport=factory)

    # ------------------------------------------------------------------
    # Service shortcuts
    # ------------------------------------------------------------------

    def add_cookie(self, scheme: str, *, login_path: str = "/login") -> HostBuilder:
        """Register a session-cookie authentication scheme."""

        def add_cookie_scheme(services: ServiceCollection) -> ServiceCollection:
            authentication: AuthenticationService = services.get_instance(AuthenticationService)
            authentication.add_scheme(scheme, CookieAuthenticationHandler(scheme, login_path=login_path))
            return services

        return self.add_service(add_cookie_scheme)

    def add_http_client(self, **client_options: Any) -> HostBuilder:
        """Register a shared ``httpx.AsyncClient``."""

        def add_client(services: ServiceCollection) -> ServiceCollection:
            return services.add_factory(httpx.AsyncClient, lambda _provider: httpx.AsyncClient(**client_options))

        return self.add_service(add_client)

    # ------------------------------------------------------------------
    # Middleware shortcuts
    # ------------------------------------------------------------------

    def use_sessions(self, secret_key: str | None = None, **options: Any) -> HostBuilder:
        """Use signed cookie sessions; the key defaults to ``session:secret_key``."""

        def use_session_middleware(app: ApplicationBuilder) -> ApplicationBuilder:
            key = secret_key or app.configuration.get("session:secret_key")
            if not key:
                raise ConfigurationError("use_sessions() requires a secret key or the 'session:secret_key' setting")
            return app.use(SessionMiddleware, secret_key=key, **options)

        return self.use_middleware(use_session_middleware)

    def use_authentication(self, scheme: str | None = None) -> HostBuilder:
        """Populate ``request.user`` from the authentication service.

        Declare after :meth:`use_sessions` when using cookie schemes.
        """

        def use_authentication_middleware(app: ApplicationBuilder) -> ApplicationBuilder:
            backend = ServiceAuthenticationBackend(app.services.get(AuthenticationService), scheme)
            return app.use(AuthenticationMiddleware, backend=backend)

        return self.use_middleware(use_authentication_middleware)

    def use_compression(self, minimum_size: int = 500) -> HostBuilder:
        return self.use_middleware(lambda app: app.use(GZipMiddleware, minimum_size=minimum_size))

    def use_hsts(self, **options: Any) -> HostBuilder:
        return self.use_middleware(lambda app: app.use(HSTSMiddleware, **options))

    def use_https(self) -> HostBuilder:
        return self.use_middleware(lambda app: app.use(HTTPSRedirectMiddleware))

    def use_static_files(self, directory: str | os.PathLike[str] = "wwwroot", *, html: bool = False) -> HostBuilder:
        return self.use_middleware(lambda app: app.use(StaticFilesMiddleware, directory=directory, html=html))

    def use_request_logging(self) -> HostBuilder:
        return self.use_middleware(lambda app: app.use(RequestLoggingMiddleware))

    # ------------------------------------------------------------------
    # Finalization
    # ------------------------------------------------------------------

    def build(self) -> Starlette:
        """Finalize every accumulator and return the ASGI application."""
        if self._lifecycle.state is not None:
            raise HostStateError(f"Host already {self._lifecycle.state.value}; build() may only run once")
        self._lifecycle.state = HostState.FINALIZING
        conf = self.config

        configuration = self._load_configuration()
        environment = configuration.get("environment") or os.getenv(ENV_ENVIRONMENT) or PRODUCTION

        conf.logging.finalize(LoggingBuilder()).apply()
        logger = get_logger("tessera.host")
        logger.debug("logging configured", extra={"stages": list(conf.logging.names)})

        services = conf.services.finalize(_core_services(configuration)(ServiceCollection()))
        logger.debug("services registered", extra={"count": len(services)})

        app_builder = ApplicationBuilder(services.build(), configuration, environment=environment)
        app_builder = conf.middleware.finalize(app_builder)

        app = app_builder.build(conf.endpoints, conf.not_found)
        logger.info(
            "application built",
            extra={
                "environment": environment,
                "middleware": app_builder.middleware_names,
                "endpoints": [endpoint.pattern for endpoint in conf.endpoints],
                "fallback": conf.not_found is not None,
            },
        )
        return app

    async def serve(self, **transport_options: Any) -> None:
        """Build the application and serve it until the transport stops."""
        app = self.build()
        configuration: Configuration = app.state.configuration
        if "server:host" in configuration:
            transport_options.setdefault("host", configuration["server:host"])
        port = configuration.get_int("server:port")
        if port is not None:
            transport_options.setdefault("port", port)

        transport = self.config.transport(app)
        self._lifecycle.state = HostState.RUNNING
        get_logger("tessera.host").debug("starting %s", transport.transport_display_name)
        await transport.run(**transport_options)

    def run(self, **transport_options: Any) -> None:
        """Blocking entry point: serve until process shutdown."""
        anyio.run(partial(self.serve, **transport_options))

    def _load_configuration(self) -> Configuration:
        source = self.config.configuration
        if source is None:
            return ConfigBuilder(self.args).build()
        if isinstance(source, ConfigBuilder):
            return source.build()
        return source


def web_host(args: Sequence[str] = ()) -> HostBuilder:
    return HostBuilder(args)


__all__ = ["HostBuilder", "HostConfig", "HostState", "HostStateError", "web_host"]

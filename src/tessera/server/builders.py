# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/tessera-python/LICENSE
# ==============================================================================

"""Subsystem builders that host stages operate on.

Each builder is the ``T`` of a :class:`~tessera.server.accumulator.StageAccumulator`:

* :class:`LoggingBuilder` – root logger setup.
* :class:`ServiceCollection` – service registrations, frozen into a
  :class:`ServiceProvider`.
* :class:`ApplicationBuilder` – ordered ASGI middleware, turned into the
  Starlette application once routing and the fallback are attached.

Builder methods mutate in place and return ``self`` so stages can be written as
one-line lambdas, e.g. ``lambda svc: svc.add_singleton(Clock, SystemClock())``.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
import logging
from typing import TYPE_CHECKING, Any

from starlette.applications import Starlette
from starlette.middleware import Middleware

from ..routing import FallbackDelegate, to_routes
from ..utils.logger import JsonSerializer as LogSerializer
from ..utils.logger import resolve_level, setup_logger


if TYPE_CHECKING:  # pragma: no cover - typing only
    from ..config import Configuration
    from ..routing import HttpEndpoint
    from ..types import HttpHandler


DEVELOPMENT = "Development"
PRODUCTION = "Production"


class LoggingBuilder:
    """Accumulates root logger settings until :meth:`apply` runs."""

    def __init__(self) -> None:
        self.level: int | str | None = None
        self.use_json: bool | None = None
        self.use_color: bool | None = None
        self.json_serializer: LogSerializer | None = None
        self.fmt: str | None = None
        self.filters: dict[str, int] = {}

    def set_minimum_level(self, level: int | str) -> LoggingBuilder:
        self.level = level
        return self

    def add_filter(self, logger_name: str, level: int | str) -> LoggingBuilder:
        """Pin ``logger_name`` to ``level`` regardless of the minimum level."""
        self.filters[logger_name] = resolve_level(level)
        return self

    def add_json(self, serializer: LogSerializer | None = None) -> LoggingBuilder:
        self.use_json = True
        self.json_serializer = serializer
        return self

    def add_console(self, *, color: bool | None = None, fmt: str | None = None) -> LoggingBuilder:
        self.use_json = False
        self.use_color = color
        self.fmt = fmt
        return self

    def apply(self) -> None:
        setup_logger(
            level=self.level,
            use_json=self.use_json,
            use_color=self.use_color,
            json_serializer=self.json_serializer,
            fmt=self.fmt,
            force=True,
        )
        for name, level in self.filters.items():
            logging.getLogger(name).setLevel(level)


class ServiceProvider:
    """Read-only service lookup produced by :meth:`ServiceCollection.build`.

    Factories are invoked on first lookup and cached.
    """

    def __init__(self, registrations: Mapping[Any, tuple[bool, Any]]) -> None:
        self._registrations = dict(registrations)
        self._instances: dict[Any, Any] = {}

    def __contains__(self, key: object) -> bool:
        return key in self._registrations

    def __len__(self) -> int:
        return len(self._registrations)

    def get(self, key: Any) -> Any:
        """Resolve ``key``; raises ``LookupError`` when unregistered."""
        if key in self._instances:
            return self._instances[key]
        try:
            is_factory, value = self._registrations[key]
        except KeyError:
            name = getattr(key, "__name__", repr(key))
            raise LookupError(f"No service registered for {name}") from None
        instance = value(self) if is_factory else value
        self._instances[key] = instance
        return instance

    def get_optional(self, key: Any) -> Any:
        if key not in self._registrations:
            return None
        return self.get(key)


class ServiceCollection:
    """Ordered service registrations; later registrations replace earlier ones."""

    def __init__(self) -> None:
        self._registrations: dict[Any, tuple[bool, Any]] = {}

    def __contains__(self, key: object) -> bool:
        return key in self._registrations

    def __len__(self) -> int:
        return len(self._registrations)

    @property
    def keys(self) -> tuple[Any, ...]:
        return tuple(self._registrations)

    def add_singleton(self, key: Any, instance: Any) -> ServiceCollection:
        self._registrations[key] = (False, instance)
        return self

    def add_factory(self, key: Any, factory: Callable[[ServiceProvider], Any]) -> ServiceCollection:
        """Register ``factory``; it receives the provider and runs once, on first lookup."""
        self._registrations[key] = (True, factory)
        return self

    def try_add_singleton(self, key: Any, instance: Any) -> ServiceCollection:
        if key not in self._registrations:
            self.add_singleton(key, instance)
        return self

    def get_instance(self, key: Any) -> Any:
        """Return an already registered singleton instance, or ``None``."""
        is_factory, value = self._registrations.get(key, (True, None))
        return None if is_factory else value

    def build(self) -> ServiceProvider:
        return ServiceProvider(self._registrations)


class ApplicationBuilder:
    """Collects middleware for the live application in declaration order.

    The first middleware used is the outermost one: it sees every request
    first and every response last.
    """

    def __init__(
        self,
        services: ServiceProvider,
        configuration: Configuration,
        *,
        environment: str = PRODUCTION,
    ) -> None:
        self.services = services
        self.configuration = configuration
        self.environment = environment
        self.middleware: list[Middleware] = []

    @property
    def is_development(self) -> bool:
        return self.environment.lower() == DEVELOPMENT.lower()

    def is_environment(self, name: str) -> bool:
        return self.environment.lower() == name.lower()

    @property
    def middleware_names(self) -> list[str]:
        return [getattr(entry.cls, "__name__", repr(entry.cls)) for entry in self.middleware]

    def use(self, middleware_class: Any, *args: Any, **kwargs: Any) -> ApplicationBuilder:
        """Append an ASGI middleware, constructed as ``middleware_class(app, *args, **kwargs)``."""
        self.middleware.append(Middleware(middleware_class, *args, **kwargs))
        return self

    def build(
        self,
        endpoints: Iterable[HttpEndpoint],
        fallback: HttpHandler | None = None,
    ) -> Starlette:
        """Produce the Starlette app: middleware, then routing, then the fallback."""
        app = Starlette(
            debug=self.is_development,
            routes=to_routes(list(endpoints)),
            middleware=list(self.middleware),
        )
        if fallback is not None:
            app.router.default = FallbackDelegate(fallback, app.router.not_found)
        app.state.services = self.services
        app.state.configuration = self.configuration
        app.state.environment = self.environment
        return app


__all__ = [
    "DEVELOPMENT",
    "PRODUCTION",
    "ApplicationBuilder",
    "LoggingBuilder",
    "ServiceCollection",
    "ServiceProvider",
]

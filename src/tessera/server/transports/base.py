# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/tessera-python/LICENSE
# ==============================================================================

"""Shared transport primitives for :mod:`tessera.server`.

Provides a minimal base class that custom transports can subclass and the
factory signature :class:`~tessera.server.host.HostBuilder` uses to obtain a
transport for the finalized application.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable


if TYPE_CHECKING:  # pragma: no cover - typing only
    from starlette.types import ASGIApp


class BaseTransport(ABC):
    """Common base for server transports.

    Subclasses receive the finalized ASGI application.  Implementations must
    define :meth:`run`, which accepts keyword arguments specific to the
    transport (e.g. host/port for uvicorn) and returns only once the server
    loop has stopped.
    """

    def __init__(self, app: ASGIApp) -> None:
        self._app = app

    @property
    def app(self) -> ASGIApp:
        return self._app

    @property
    def transport_display_name(self) -> str:
        return type(self).__name__

    @abstractmethod
    async def run(self, **kwargs: Any) -> None:
        """Serve the application until shutdown."""


@runtime_checkable
class TransportFactory(Protocol):
    """Callable that produces a transport for a finalized application."""

    def __call__(self, app: ASGIApp) -> BaseTransport:  # pragma: no cover - protocol
        ...


__all__ = ["BaseTransport", "TransportFactory"]

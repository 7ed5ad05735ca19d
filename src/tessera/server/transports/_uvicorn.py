# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/tessera-python/LICENSE
# ==============================================================================

"""Uvicorn-backed transport."""

from __future__ import annotations

from typing import Any

from uvicorn import Config, Server

from .base import BaseTransport
from ...utils import get_logger


class UvicornTransport(BaseTransport):
    """Serve the finalized application with uvicorn."""

    DEFAULT_HOST: str = "127.0.0.1"
    DEFAULT_PORT: int = 8000
    DEFAULT_LOG_LEVEL: str = "info"

    async def run(
        self,
        *,
        host: str | None = None,
        port: int | None = None,
        log_level: str | None = None,
        **uvicorn_options: Any,
    ) -> None:
        host = self.DEFAULT_HOST if host is None else host
        port = self.DEFAULT_PORT if port is None else port
        log_level = log_level or self.DEFAULT_LOG_LEVEL

        await self._serve(host, port, log_level, uvicorn_options)

    async def _serve(self, host: str, port: int, log_level: str, uvicorn_options: dict[str, Any]) -> None:
        # Tessera owns the root logger; keep uvicorn from replacing it.
        uvicorn_options.setdefault("log_config", None)
        config = Config(app=self.app, host=host, port=port, log_level=log_level, **uvicorn_options)
        server = Server(config)
        get_logger("tessera.server").info("listening on http://%s:%s", host, port)
        await server.serve()


__all__ = ["UvicornTransport"]

# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/tessera-python/LICENSE
# ==============================================================================

"""ASGI middleware shipped with Tessera.

Compression and HTTPS redirection reuse Starlette's middleware directly; the
classes here cover what Starlette does not provide.
"""

from __future__ import annotations

import stat
import time
from typing import TYPE_CHECKING

import anyio
from starlette.datastructures import MutableHeaders
from starlette.staticfiles import StaticFiles

from ..utils import get_logger


if TYPE_CHECKING:  # pragma: no cover - typing only
    import os

    from starlette.types import ASGIApp, Message, Receive, Scope, Send


DEFAULT_HSTS_MAX_AGE = 30 * 24 * 60 * 60
_LOOPBACK_HOSTS = frozenset({"localhost", "127.0.0.1", "[::1]"})


class HSTSMiddleware:
    """Add ``Strict-Transport-Security`` to HTTPS responses.

    Loopback hosts are skipped so local development over HTTPS does not pin the
    browser.
    """

    def __init__(
        self,
        app: ASGIApp,
        *,
        max_age: int = DEFAULT_HSTS_MAX_AGE,
        include_subdomains: bool = False,
        preload: bool = False,
    ) -> None:
        self.app = app
        directives = [f"max-age={max_age}"]
        if include_subdomains:
            directives.append("includeSubDomains")
        if preload:
            directives.append("preload")
        self.header_value = "; ".join(directives)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or scope.get("scheme") != "https" or self._is_loopback(scope):
            await self.app(scope, receive, send)
            return

        async def send_with_hsts(message: Message) -> None:
            if message["type"] == "http.response.start":
                headers = MutableHeaders(scope=message)
                if "strict-transport-security" not in headers:
                    headers.append("strict-transport-security", self.header_value)
            await send(message)

        await self.app(scope, receive, send_with_hsts)

    @staticmethod
    def _is_loopback(scope: Scope) -> bool:
        for key, value in scope.get("headers", []):
            if key == b"host":
                host = value.decode("latin-1")
                if host.startswith("["):
                    host = host.split("]", 1)[0] + "]"
                else:
                    host = host.rsplit(":", 1)[0]
                return host in _LOOPBACK_HOSTS
        server = scope.get("server")
        return bool(server) and server[0] in _LOOPBACK_HOSTS


class RequestLoggingMiddleware:
    """Log one line per request with its status and duration."""

    def __init__(self, app: ASGIApp, *, logger_name: str = "tessera.requests") -> None:
        self.app = app
        self._logger = get_logger(logger_name)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        status_code = 500
        started = time.perf_counter()

        async def send_recording_status(message: Message) -> None:
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message["status"]
            await send(message)

        try:
            await self.app(scope, receive, send_recording_status)
        finally:
            duration_ms = (time.perf_counter() - started) * 1000
            self._logger.info(
                "%s %s %s",
                scope.get("method", "-"),
                scope.get("path", "-"),
                status_code,
                extra={
                    "event": "http.request",
                    "method": scope.get("method"),
                    "path": scope.get("path"),
                    "status_code": status_code,
                    "duration_ms": duration_ms,
                },
            )


class StaticFilesMiddleware:
    """Serve files from ``directory`` and pass every miss down the pipeline."""

    def __init__(self, app: ASGIApp, *, directory: str | os.PathLike[str], html: bool = False) -> None:
        self.app = app
        self.static = StaticFiles(directory=directory, html=html)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or scope.get("method") not in ("GET", "HEAD"):
            await self.app(scope, receive, send)
            return

        path = self.static.get_path(scope)
        full_path, stat_result = await anyio.to_thread.run_sync(self.static.lookup_path, path)
        if stat_result is None or not stat.S_ISREG(stat_result.st_mode):
            await self.app(scope, receive, send)
            return

        response = self.static.file_response(full_path, stat_result, scope)
        await response(scope, receive, send)


__all__ = ["DEFAULT_HSTS_MAX_AGE", "HSTSMiddleware", "RequestLoggingMiddleware", "StaticFilesMiddleware"]

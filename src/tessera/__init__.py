# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/tessera-python/LICENSE
# ==============================================================================

"""Tessera: composable HTTP handlers and declarative host assembly."""

from __future__ import annotations

from . import request, response, routing
from .auth import AuthenticationProperties, AuthenticationService, Principal
from .config import Configuration, ConfigurationError, configuration
from .context import CookieOptions, HttpContext, ResponseCompletedError
from .routing import HttpEndpoint
from .server import HostBuilder, HostStateError, web_host
from .types import HttpHandler, ResponseModifier


__all__ = [
    "AuthenticationProperties",
    "AuthenticationService",
    "Configuration",
    "ConfigurationError",
    "CookieOptions",
    "HostBuilder",
    "HostStateError",
    "HttpContext",
    "HttpEndpoint",
    "HttpHandler",
    "Principal",
    "ResponseCompletedError",
    "ResponseModifier",
    "configuration",
    "request",
    "response",
    "routing",
    "web_host",
]

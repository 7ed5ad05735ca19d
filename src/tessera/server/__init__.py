# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/tessera-python/LICENSE
# ==============================================================================

"""Public server-side surface for Tessera.

The sequencing logic lives in :mod:`tessera.server.host`; this module
re-exports the primitives that host applications are expected to import.
"""

from __future__ import annotations

from .accumulator import Conditional, StageAccumulator, Unconditional
from .builders import ApplicationBuilder, LoggingBuilder, ServiceCollection, ServiceProvider
from .host import HostBuilder, HostConfig, HostState, HostStateError, web_host


__all__ = [
    "ApplicationBuilder",
    "Conditional",
    "HostBuilder",
    "HostConfig",
    "HostState",
    "HostStateError",
    "LoggingBuilder",
    "ServiceCollection",
    "ServiceProvider",
    "StageAccumulator",
    "Unconditional",
    "web_host",
]

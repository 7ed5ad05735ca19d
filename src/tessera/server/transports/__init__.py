# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/tessera-python/LICENSE
# ==============================================================================

"""Transports that run a finalized Tessera application."""

from __future__ import annotations

from .base import BaseTransport, TransportFactory
from ._uvicorn import UvicornTransport


__all__ = ["BaseTransport", "TransportFactory", "UvicornTransport"]

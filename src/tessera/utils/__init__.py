# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/tessera-python/LICENSE
# ==============================================================================

"""Utility helpers for Tessera."""

from __future__ import annotations

from .logger import get_logger, setup_logger
from .serializer import JsonOptions, JsonSerializer


__all__ = [
    "JsonOptions",
    "JsonSerializer",
    "get_logger",
    "setup_logger",
]

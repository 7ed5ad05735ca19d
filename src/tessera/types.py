# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/tessera-python/LICENSE
# ==============================================================================

"""Shared callable signatures for handlers and modifiers."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, TypeAlias


if TYPE_CHECKING:  # pragma: no cover - typing only
    from .context import HttpContext


ResponseModifier: TypeAlias = "Callable[[HttpContext], HttpContext]"
"""Synchronous mutation of response metadata. Never writes a body."""

HttpHandler: TypeAlias = "Callable[[HttpContext], Awaitable[None]]"
"""Async request handler that ends in exactly one terminal response action."""


__all__ = ["HttpHandler", "ResponseModifier"]

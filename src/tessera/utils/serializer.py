# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/tessera-python/LICENSE
# ==============================================================================

"""JSON serialization backed by pydantic-core.

Any value pydantic understands (models, dataclasses, enums, datetimes, UUIDs,
plain containers) can be handed to :func:`tessera.response.of_json`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import pydantic_core


@dataclass(frozen=True, slots=True)
class JsonOptions:
    """Serializer switches passed through ``of_json_options``."""

    indent: int | None = None
    by_alias: bool = True
    exclude_none: bool = False


DEFAULT_JSON_OPTIONS = JsonOptions()


class JsonSerializer:
    """Default serializer collaborator registered with the core services."""

    async def serialize(self, obj: Any, options: JsonOptions = DEFAULT_JSON_OPTIONS) -> bytes:
        return pydantic_core.to_json(
            obj,
            indent=options.indent,
            by_alias=options.by_alias,
            exclude_none=options.exclude_none,
        )


__all__ = ["DEFAULT_JSON_OPTIONS", "JsonOptions", "JsonSerializer"]

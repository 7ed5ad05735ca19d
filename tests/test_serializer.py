# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/tessera-python/LICENSE
# ==============================================================================

"""Tests for JSON serialization utilities."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
import json
from typing import Any
from uuid import UUID

import pytest
from pydantic import BaseModel, Field

from tessera.utils.serializer import JsonOptions, JsonSerializer


class Color(Enum):
    """Test enum."""

    RED = "red"
    BLUE = "blue"


class NestedModel(BaseModel):
    """Deeply nested Pydantic model."""

    timestamp: datetime
    identifier: UUID
    color: Color
    metadata: dict[str, Any]


class ComplexModel(BaseModel):
    """Complex model with aliases and nested structures."""

    display_name: str = Field(alias="displayName")
    items: list[NestedModel]
    optional_field: str | None = None


@dataclass
class Point:
    x: int
    y: int


def _complex() -> ComplexModel:
    return ComplexModel(
        displayName="Test",
        items=[
            NestedModel(
                timestamp=datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc),
                identifier=UUID("12345678-1234-5678-1234-567812345678"),
                color=Color.BLUE,
                metadata={"nested": {"deep": [1, 2, 3]}},
            )
        ],
    )


@pytest.mark.anyio
async def test_serializer_complex_model_uses_aliases() -> None:
    result = json.loads(await JsonSerializer().serialize(_complex()))

    assert result["displayName"] == "Test"
    assert result["items"][0]["timestamp"] == "2025-01-01T12:00:00Z"
    assert result["items"][0]["identifier"] == "12345678-1234-5678-1234-567812345678"
    assert result["items"][0]["color"] == "blue"
    assert result["optional_field"] is None


@pytest.mark.anyio
async def test_serializer_exclude_none() -> None:
    result = json.loads(await JsonSerializer().serialize(_complex(), JsonOptions(exclude_none=True)))

    assert "optional_field" not in result


@pytest.mark.anyio
async def test_serializer_plain_values() -> None:
    data = await JsonSerializer().serialize({"point": Point(1, 2), "colors": (Color.RED,)})

    assert json.loads(data) == {"point": {"x": 1, "y": 2}, "colors": ["red"]}


@pytest.mark.anyio
async def test_serializer_returns_compact_bytes() -> None:
    data = await JsonSerializer().serialize({"b": 1, "a": [1, 2]})

    assert data == b'{"b":1,"a":[1,2]}'


@pytest.mark.anyio
async def test_serializer_indent_and_field_names() -> None:
    data = await JsonSerializer().serialize(_complex(), JsonOptions(indent=2, by_alias=False))

    assert data.startswith(b"{\n  ")
    assert json.loads(data)["display_name"] == "Test"

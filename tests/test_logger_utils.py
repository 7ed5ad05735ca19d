# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/tessera-python/LICENSE
# ==============================================================================

from __future__ import annotations

import io
import json
import logging
from typing import Any

import pytest

from tessera.utils.logger import (
    ColoredFormatter,
    PlainFormatter,
    StructuredJSONFormatter,
    TesseraHandler,
    get_logger,
    resolve_level,
    setup_logger,
)


def _capture_logging(level: int, *, use_json: bool, **kwargs: Any) -> list[str]:
    stream = io.StringIO()

    handler = logging.StreamHandler(stream)
    handler.setLevel(level)

    if use_json:
        serializer = kwargs.pop("json_serializer", json.dumps)
        payload_transformer = kwargs.pop("payload_transformer", None)
        handler.setFormatter(StructuredJSONFormatter(serializer, datefmt=None, payload_transformer=payload_transformer))
    else:
        handler.setFormatter(logging.Formatter("%(levelname)s:%(name)s:%(message)s"))

    logger = logging.getLogger("tessera.test.logger")
    logger.handlers = []
    logger.setLevel(level)
    logger.addHandler(handler)
    logger.propagate = False

    logger.info("greeting", extra={"context": {"value": 42}, "duration_ms": 1.5})
    handler.flush()
    logger.handlers = []
    logger.propagate = True

    return stream.getvalue().strip().splitlines()


def test_setup_logger_plain_stdout(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TESSERA_LOG_JSON", "0")
    setup_logger(force=True)
    log = get_logger("tessera.test")

    stream = io.StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(logging.Formatter("%(levelname)s:%(name)s:%(message)s"))
    log.handlers = [handler]

    log.info("demo")
    handler.flush()
    log.handlers = []

    assert stream.getvalue().strip().endswith("INFO:tessera.test:demo")


def test_setup_logger_installs_single_managed_handler() -> None:
    setup_logger(force=True, use_color=False)
    setup_logger(level="DEBUG")

    root = logging.getLogger()
    managed = [h for h in root.handlers if isinstance(h, TesseraHandler)]

    assert len(managed) == 1
    assert isinstance(managed[0].formatter, PlainFormatter)
    # second call without force is a no-op
    assert root.level == logging.INFO


def test_setup_logger_json_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TESSERA_LOG_JSON", "true")
    setup_logger(force=True)

    managed = [h for h in logging.getLogger().handlers if isinstance(h, TesseraHandler)]

    assert isinstance(managed[0].formatter, StructuredJSONFormatter)


def test_no_color_env_selects_plain_formatter(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("NO_COLOR", "1")
    monkeypatch.delenv("TESSERA_LOG_JSON", raising=False)
    setup_logger(force=True)

    managed = [h for h in logging.getLogger().handlers if isinstance(h, TesseraHandler)]

    assert type(managed[0].formatter) is PlainFormatter


def test_setup_logger_json_with_custom_serializer() -> None:
    lines = _capture_logging(
        logging.INFO,
        use_json=True,
        json_serializer=lambda payload: json.dumps(payload),
    )

    assert len(lines) == 1
    payload = json.loads(lines[0])
    assert payload["logger"] == "tessera.test.logger"
    assert payload["message"] == "greeting"
    assert payload["context"] == {"value": 42, "duration_ms": 1.5}


def test_payload_transformer_applied() -> None:
    lines = _capture_logging(
        logging.INFO,
        use_json=True,
        json_serializer=lambda payload: json.dumps(payload),
        payload_transformer=lambda payload: {
            **payload,
            "context": {"transformed": payload.get("context", {})},
        },
    )

    assert len(lines) == 1
    payload = json.loads(lines[0])
    assert payload["context"] == {"transformed": {"value": 42, "duration_ms": 1.5}}


def test_plain_formatter_appends_duration_suffix() -> None:
    formatter = PlainFormatter("%(message)s")
    record = logging.LogRecord("demo", logging.INFO, __file__, 0, "done", args=(), exc_info=None)
    record.duration_ms = 12.3456

    rendered = formatter.format(record)

    assert rendered == "done [12.35 ms]"


def test_colored_formatter_appends_duration_suffix() -> None:
    formatter = ColoredFormatter("%(levelname)s %(message)s")
    record = logging.LogRecord("demo", logging.INFO, __file__, 0, "done", args=(), exc_info=None)
    record.duration_ms = 7.0

    rendered = formatter.format(record)

    assert "[7.00 ms]" in rendered
    assert "\033[32mINFO" in rendered
    assert record.levelname == "INFO"


@pytest.mark.parametrize(
    ("level", "expected"),
    [(logging.DEBUG, logging.DEBUG), ("warning", logging.WARNING), ("bogus", logging.INFO)],
)
def test_resolve_level(level: int | str, expected: int) -> None:
    assert resolve_level(level) == expected


def test_resolve_level_reads_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TESSERA_LOG_LEVEL", "error")
    assert resolve_level(None) == logging.ERROR

    monkeypatch.delenv("TESSERA_LOG_LEVEL")
    assert resolve_level(None) == logging.INFO

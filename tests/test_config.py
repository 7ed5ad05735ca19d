# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/tessera-python/LICENSE
# ==============================================================================

"""Tests for layered configuration loading."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from tessera.config import Configuration, ConfigurationError, configuration, parse_command_line, read_environment


@pytest.fixture
def config_dir(tmp_path: Path) -> Path:
    (tmp_path / "app.json").write_text(
        json.dumps(
            {
                "Server": {"Host": "0.0.0.0", "Port": 8080},
                "Features": ["search", "export"],
                "Debug": False,
                "Missing": None,
            }
        ),
        encoding="utf-8",
    )
    (tmp_path / "app.ini").write_text(
        "name = tessera\n\n[server]\nport = 9000\n\n[database]\nurl = sqlite:///app.db\n",
        encoding="utf-8",
    )
    (tmp_path / "app.xml").write_text(
        '<config><server port="7000"><host>xml-host</host></server><greeting>hi</greeting></config>',
        encoding="utf-8",
    )
    (tmp_path / ".env").write_text("SESSION__SECRET_KEY=from-dotenv\nEMPTY=\n", encoding="utf-8")
    return tmp_path


def test_json_is_flattened_with_separator(config_dir: Path) -> None:
    config = configuration().base_path(config_dir).required_json("app.json").build()

    assert config["server:host"] == "0.0.0.0"
    assert config.get_int("SERVER:PORT") == 8080
    assert config["features:1"] == "export"
    assert config["debug"] == "false"
    assert config["missing"] == ""


def test_ini_root_keys_and_sections(config_dir: Path) -> None:
    config = configuration().base_path(config_dir).required_ini("app.ini").build()

    assert config["name"] == "tessera"
    assert config["server:port"] == "9000"
    assert config["database:url"] == "sqlite:///app.db"


def test_xml_children_and_attributes(config_dir: Path) -> None:
    config = configuration().base_path(config_dir).required_xml("app.xml").build()

    assert config["server:port"] == "7000"
    assert config["server:host"] == "xml-host"
    assert config["greeting"] == "hi"


def test_env_file_maps_double_underscore(config_dir: Path) -> None:
    config = configuration().base_path(config_dir).required_env_file(".env").build()

    assert config["session:secret_key"] == "from-dotenv"
    assert config["empty"] == ""


def test_later_sources_override_earlier(config_dir: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SERVER__PORT", "1111")
    monkeypatch.setenv("TESSERA_TEST__ONLY_ENV", "env")

    config = (
        configuration(["--server:port=1000", "--only_cli", "cli"])
        .base_path(config_dir)
        .add_env()
        .required_json("app.json")
        .optional_ini("app.ini")
        .in_memory({"Server:Port": "1234"})
        .build()
    )

    assert config["server:port"] == "1234"
    assert config["only_cli"] == "cli"
    assert config["tessera_test:only_env"] == "env"
    assert config["server:host"] == "0.0.0.0"


def test_first_declared_file_wins_within_group(config_dir: Path) -> None:
    config = configuration().base_path(config_dir).required_json("app.json").required_ini("app.ini").build()

    assert config["server:port"] == "8080"
    assert config["database:url"] == "sqlite:///app.db"


def test_first_declared_optional_file_wins(tmp_path: Path) -> None:
    (tmp_path / "a.json").write_text(json.dumps({"k": "a"}), encoding="utf-8")
    (tmp_path / "b.json").write_text(json.dumps({"k": "b", "only_b": "yes"}), encoding="utf-8")

    required = configuration().base_path(tmp_path).required_json("a.json").required_json("b.json").build()
    optional = configuration().base_path(tmp_path).optional_json("a.json").optional_json("b.json").build()

    assert required["k"] == "a"
    assert optional["k"] == "a"
    assert optional["only_b"] == "yes"


def test_optional_group_overrides_required_group(tmp_path: Path) -> None:
    (tmp_path / "a.json").write_text(json.dumps({"k": "a"}), encoding="utf-8")
    (tmp_path / "b.json").write_text(json.dumps({"k": "b"}), encoding="utf-8")

    config = configuration().base_path(tmp_path).optional_json("b.json").required_json("a.json").build()

    assert config["k"] == "b"


def test_environment_ignored_unless_declared(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TESSERA_TEST__FLAG", "on")

    assert "tessera_test:flag" not in configuration().build()
    assert configuration().add_env().build().get_bool("tessera_test:flag") is True


def test_missing_required_file_is_fatal(tmp_path: Path) -> None:
    builder = configuration().base_path(tmp_path).required_json("nope.json")

    with pytest.raises(ConfigurationError, match="nope.json"):
        builder.build()


def test_missing_optional_file_is_skipped(tmp_path: Path) -> None:
    config = configuration().base_path(tmp_path).optional_json("nope.json").optional_xml("nope.xml").build()

    assert len(config) == 0


def test_unreadable_file_raises_configuration_error(tmp_path: Path) -> None:
    (tmp_path / "broken.json").write_text("{not json", encoding="utf-8")

    with pytest.raises(ConfigurationError, match="Could not read"):
        configuration().base_path(tmp_path).optional_json("broken.json").build()


def test_builder_is_immutable() -> None:
    base = configuration()
    extended = base.in_memory([("key", "value")])

    assert "key" not in base.build()
    assert extended.build()["KEY"] == "value"
    assert base.spec.in_memory == ()


def test_get_section_strips_prefix() -> None:
    config = Configuration({"Server:Host": "h", "server:port": "1", "other": "x"})
    section = config.get_section("server")

    assert dict(section) == {"Host": "h", "port": "1"}
    assert section["host"] == "h"


def test_configuration_typed_getters() -> None:
    config = Configuration({"workers": "4", "verbose": "Yes"})

    assert config.get_int("workers") == 4
    assert config.get_int("absent", 7) == 7
    assert config.get_bool("verbose") is True
    assert config.get_bool("absent") is False


@pytest.mark.parametrize(
    ("args", "expected"),
    [
        (["--port=80"], {"port": "80"}),
        (["--port", "80"], {"port": "80"}),
        (["/port", "80"], {"port": "80"}),
        (["port=80", "host=h"], {"port": "80", "host": "h"}),
        (["stray"], {}),
    ],
)
def test_parse_command_line_forms(args: list[str], expected: dict[str, str]) -> None:
    assert parse_command_line(args) == expected


def test_read_environment_maps_separator() -> None:
    assert read_environment({"A__B__C": "1", "PLAIN": "2"}) == {"A:B:C": "1", "PLAIN": "2"}

# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/tessera-python/LICENSE
# ==============================================================================

"""Layered key/value configuration.

:func:`configuration` returns an immutable :class:`ConfigBuilder`.  Sources are
declared fluently and loaded by :meth:`ConfigBuilder.build` in a fixed
precedence, later sources overriding earlier ones:

1. command-line arguments
2. environment variables (when ``add_env()`` was declared)
3. required files; within the group the first declared file wins
4. optional files; within the group the first declared file wins
5. in-memory pairs

Hierarchical sources are flattened into ``section:key`` names and lookups are
case-insensitive.  A missing required file raises :class:`ConfigurationError`,
which hosts treat as fatal.
"""

from __future__ import annotations

import configparser
from collections.abc import Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass, field, replace
import json
import os
from pathlib import Path
from typing import Any
from xml.etree import ElementTree

from dotenv import dotenv_values

from .utils import get_logger


SEPARATOR = ":"
ENV_SEPARATOR = "__"

_logger = get_logger("tessera.config")


class ConfigurationError(RuntimeError):
    """Raised when a required configuration source is missing or unreadable."""


@dataclass(frozen=True, slots=True)
class IniFile:
    path: str


@dataclass(frozen=True, slots=True)
class XmlFile:
    path: str


@dataclass(frozen=True, slots=True)
class JsonFile:
    path: str


@dataclass(frozen=True, slots=True)
class EnvFile:
    """A ``.env`` file parsed with python-dotenv."""

    path: str


ConfigFile = IniFile | XmlFile | JsonFile | EnvFile


class Configuration(Mapping[str, str]):
    """Case-insensitive, read-only view over flattened configuration keys."""

    def __init__(self, values: Mapping[str, str] | None = None) -> None:
        self._values: dict[str, str] = {}
        self._names: dict[str, str] = {}
        for key, value in (values or {}).items():
            folded = key.lower()
            self._values[folded] = value
            self._names.setdefault(folded, key)

    def __getitem__(self, key: str) -> str:
        return self._values[key.lower()]

    def __iter__(self) -> Iterator[str]:
        return iter(self._names[folded] for folded in self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and key.lower() in self._values

    def __repr__(self) -> str:
        return f"Configuration({len(self)} keys)"

    def get_int(self, key: str, default: int | None = None) -> int | None:
        value = self.get(key)
        return default if value is None else int(value)

    def get_bool(self, key: str, default: bool = False) -> bool:
        value = self.get(key)
        if value is None:
            return default
        return value.strip().lower() in {"1", "true", "yes", "on"}

    def get_section(self, name: str) -> Configuration:
        """Return the keys below ``name`` with the ``name:`` prefix removed."""
        prefix = f"{name.lower()}{SEPARATOR}"
        return Configuration(
            {self._names[folded][len(prefix) :]: value for folded, value in self._values.items() if folded.startswith(prefix)}
        )


# ==============================================================================
# Source readers
# ==============================================================================


def _flatten(value: Any, prefix: str, out: dict[str, str]) -> None:
    if isinstance(value, dict):
        for key, child in value.items():
            _flatten(child, f"{prefix}{SEPARATOR}{key}" if prefix else str(key), out)
    elif isinstance(value, list):
        for index, child in enumerate(value):
            _flatten(child, f"{prefix}{SEPARATOR}{index}" if prefix else str(index), out)
    elif value is None:
        out[prefix] = ""
    elif isinstance(value, bool):
        out[prefix] = "true" if value else "false"
    else:
        out[prefix] = str(value)


def _read_json(path: Path) -> dict[str, str]:
    with path.open(encoding="utf-8") as handle:
        data = json.load(handle)
    out: dict[str, str] = {}
    _flatten(data, "", out)
    return out


_INI_ROOT = "tessera.root"
_INI_NO_DEFAULTS = "tessera.no-defaults"


def _read_ini(path: Path) -> dict[str, str]:
    parser = configparser.ConfigParser(interpolation=None, default_section=_INI_NO_DEFAULTS)
    # keys declared before the first section header live at the top level
    parser.read_string(f"[{_INI_ROOT}]\n" + path.read_text(encoding="utf-8"), source=str(path))
    out: dict[str, str] = {}
    for section in parser.sections():
        prefix = "" if section == _INI_ROOT else f"{section}{SEPARATOR}"
        for key, value in parser.items(section, raw=True):
            out[f"{prefix}{key}"] = value
    return out


def _read_xml_element(element: ElementTree.Element, prefix: str, out: dict[str, str]) -> None:
    for attribute, value in element.attrib.items():
        out[f"{prefix}{SEPARATOR}{attribute}" if prefix else attribute] = value
    children = list(element)
    if not children:
        text = (element.text or "").strip()
        if prefix and (text or not element.attrib):
            out[prefix] = text
        return
    for child in children:
        _read_xml_element(child, f"{prefix}{SEPARATOR}{child.tag}" if prefix else child.tag, out)


def _read_xml(path: Path) -> dict[str, str]:
    root = ElementTree.parse(path).getroot()
    out: dict[str, str] = {}
    _read_xml_element(root, "", out)
    return out


def _read_env_file(path: Path) -> dict[str, str]:
    return {
        key.replace(ENV_SEPARATOR, SEPARATOR): value or ""
        for key, value in dotenv_values(path).items()
    }


_READERS = {
    IniFile: _read_ini,
    XmlFile: _read_xml,
    JsonFile: _read_json,
    EnvFile: _read_env_file,
}


def read_environment(environ: Mapping[str, str] | None = None) -> dict[str, str]:
    source = os.environ if environ is None else environ
    return {key.replace(ENV_SEPARATOR, SEPARATOR): value for key, value in source.items()}


def parse_command_line(args: Sequence[str]) -> dict[str, str]:
    """Parse ``--key=value``, ``--key value``, ``/key value`` and ``key=value`` forms."""
    out: dict[str, str] = {}
    index = 0
    while index < len(args):
        current = args[index]
        index += 1
        prefixed = current.startswith(("--", "/")) or (current.startswith("-") and len(current) > 1)
        stripped = current.lstrip("-") if current.startswith("-") else current.lstrip("/")
        if "=" in stripped:
            key, value = stripped.split("=", 1)
        elif prefixed and index < len(args):
            key, value = stripped, args[index]
            index += 1
        else:
            continue
        if key:
            out[key] = value
    return out


# ==============================================================================
# Builder
# ==============================================================================


@dataclass(frozen=True, slots=True)
class ConfigurationSpec:
    """Accumulated, not-yet-loaded configuration sources."""

    add_env_vars: bool = False
    base_path: str = field(default_factory=os.getcwd)
    required_files: tuple[ConfigFile, ...] = ()
    optional_files: tuple[ConfigFile, ...] = ()
    in_memory: tuple[tuple[str, str], ...] = ()


class ConfigBuilder:
    """Immutable fluent builder over :class:`ConfigurationSpec`."""

    __slots__ = ("args", "spec")

    def __init__(self, args: Sequence[str] = (), spec: ConfigurationSpec | None = None) -> None:
        self.args = tuple(args)
        self.spec = spec or ConfigurationSpec()

    def _with(self, **changes: Any) -> ConfigBuilder:
        return ConfigBuilder(self.args, replace(self.spec, **changes))

    def base_path(self, base_path: str | os.PathLike[str]) -> ConfigBuilder:
        return self._with(base_path=str(base_path))

    def add_env(self) -> ConfigBuilder:
        return self._with(add_env_vars=True)

    def in_memory(self, pairs: Iterable[tuple[str, str]] | Mapping[str, str]) -> ConfigBuilder:
        items = pairs.items() if isinstance(pairs, Mapping) else pairs
        return self._with(in_memory=self.spec.in_memory + tuple((str(k), str(v)) for k, v in items))

    def _required(self, file: ConfigFile) -> ConfigBuilder:
        return self._with(required_files=self.spec.required_files + (file,))

    def _optional(self, file: ConfigFile) -> ConfigBuilder:
        return self._with(optional_files=self.spec.optional_files + (file,))

    def required_ini(self, path: str) -> ConfigBuilder:
        return self._required(IniFile(path))

    def optional_ini(self, path: str) -> ConfigBuilder:
        return self._optional(IniFile(path))

    def required_xml(self, path: str) -> ConfigBuilder:
        return self._required(XmlFile(path))

    def optional_xml(self, path: str) -> ConfigBuilder:
        return self._optional(XmlFile(path))

    def required_json(self, path: str) -> ConfigBuilder:
        return self._required(JsonFile(path))

    def optional_json(self, path: str) -> ConfigBuilder:
        return self._optional(JsonFile(path))

    def required_env_file(self, path: str) -> ConfigBuilder:
        return self._required(EnvFile(path))

    def optional_env_file(self, path: str) -> ConfigBuilder:
        return self._optional(EnvFile(path))

    def build(self) -> Configuration:
        """Load every declared source; raises :class:`ConfigurationError` on a missing required file."""
        values: dict[str, str] = {}

        def merge(source: Mapping[str, str]) -> None:
            for key, value in source.items():
                for existing in [k for k in values if k.lower() == key.lower()]:
                    del values[existing]
                values[key] = value

        merge(parse_command_line(self.args))
        if self.spec.add_env_vars:
            merge(read_environment())
        for file in reversed(self.spec.required_files):
            merge(self._load(file, optional=False))
        for file in reversed(self.spec.optional_files):
            merge(self._load(file, optional=True))
        merge(dict(self.spec.in_memory))

        return Configuration(values)

    def _load(self, file: ConfigFile, *, optional: bool) -> dict[str, str]:
        path = Path(self.spec.base_path) / file.path
        if not path.is_file():
            if optional:
                _logger.debug("optional configuration file not found", extra={"path": str(path)})
                return {}
            raise ConfigurationError(f"Required configuration file not found: {path}")

        reader = _READERS[type(file)]
        try:
            return reader(path)
        except (OSError, ValueError, configparser.Error, ElementTree.ParseError) as exc:
            raise ConfigurationError(f"Could not read configuration file {path}: {exc}") from exc


def configuration(args: Sequence[str] = ()) -> ConfigBuilder:
    return ConfigBuilder(args)


__all__ = [
    "ConfigBuilder",
    "ConfigFile",
    "Configuration",
    "ConfigurationError",
    "ConfigurationSpec",
    "EnvFile",
    "IniFile",
    "JsonFile",
    "XmlFile",
    "configuration",
    "parse_command_line",
    "read_environment",
]

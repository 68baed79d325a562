"""Configuration file loading.

Handles:
- YAML file parsing (JSON files parse as YAML too)
- Conversion from raw dicts to typed ConfigLayer partials
- Environment variable overrides
- Folding layers onto the built-in defaults
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

from agentfence.config.merge import merge_layers
from agentfence.config.paths import get_config_paths
from agentfence.config.schema import (
    Config,
    ConfigLayer,
    FilesystemLayer,
    LoggingLayer,
    NetworkLayer,
)

_log = logging.getLogger("agentfence.config")

_TRUE_STRINGS = {"1", "true", "yes", "on"}
_FALSE_STRINGS = {"0", "false", "no", "off"}


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a YAML file, returning empty dict if not found or invalid.

    Args:
        path: Path to the YAML file.

    Returns:
        Parsed YAML as dict, or empty dict on error.
    """
    if not path.exists():
        return {}

    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
            if data is not None and not isinstance(data, dict):
                _log.warning("Ignoring %s: top level must be a mapping", path)
                return {}
            return data or {}
    except yaml.YAMLError as e:
        _log.warning("Invalid YAML in %s: %s", path, e)
        return {}
    except PermissionError:
        _log.debug("Permission denied reading %s", path)
        return {}
    except OSError as e:
        _log.warning("Error reading %s: %s", path, e)
        return {}


class _Reader:
    """Typed field extraction that drops malformed values with a warning."""

    def __init__(self, data: Mapping[str, Any], source: str, section: str = "") -> None:
        self._data = data
        self._source = source
        self._section = section

    def _name(self, key: str) -> str:
        return f"{self._section}.{key}" if self._section else key

    def _reject(self, key: str, expected: str) -> None:
        _log.warning("Ignoring %s in %s: expected %s", self._name(key), self._source, expected)

    def section(self, key: str) -> _Reader:
        value = self._data.get(key)
        if value is None:
            return _Reader({}, self._source, self._name(key))
        if not isinstance(value, Mapping):
            self._reject(key, "a mapping")
            return _Reader({}, self._source, self._name(key))
        return _Reader(value, self._source, self._name(key))

    def str_list(self, key: str) -> list[str] | None:
        value = self._data.get(key)
        if value is None:
            return None
        if isinstance(value, list) and all(isinstance(v, str) for v in value):
            return list(value)
        self._reject(key, "a list of strings")
        return None

    def boolean(self, key: str) -> bool | None:
        value = self._data.get(key)
        if value is None or isinstance(value, bool):
            return value
        self._reject(key, "true or false")
        return None

    def integer(self, key: str) -> int | None:
        value = self._data.get(key)
        if value is None or (isinstance(value, int) and not isinstance(value, bool)):
            return value
        self._reject(key, "an integer")
        return None

    def string(self, key: str) -> str | None:
        value = self._data.get(key)
        if value is None or isinstance(value, str):
            return value
        self._reject(key, "a string")
        return None


def dict_to_layer(data: Mapping[str, Any], source: str = "<dict>") -> ConfigLayer:
    """Convert a raw config mapping to a typed layer.

    Unknown keys are ignored. Values of the wrong type are dropped with a
    warning so that one bad entry does not discard the whole file.

    Args:
        data: Parsed configuration mapping.
        source: Name of the origin, used in warnings.

    Returns:
        Typed ConfigLayer with unset fields left as None.
    """
    root = _Reader(data, source)
    filesystem = root.section("filesystem")
    network = root.section("network")
    log = root.section("logging")

    return ConfigLayer(
        enabled=root.boolean("enabled"),
        bypassed_commands=root.str_list("bypassed_commands"),
        unsandboxed_commands=root.str_list("unsandboxed_commands"),
        wrapper=root.str_list("wrapper"),
        filesystem=FilesystemLayer(
            deny_read=filesystem.str_list("deny_read"),
            allow_write=filesystem.str_list("allow_write"),
            deny_write=filesystem.str_list("deny_write"),
            allow_git_config=filesystem.boolean("allow_git_config"),
        ),
        network=NetworkLayer(
            allowed_domains=network.str_list("allowed_domains"),
            denied_domains=network.str_list("denied_domains"),
            allow_local_binding=network.boolean("allow_local_binding"),
        ),
        logging=LoggingLayer(
            level=log.string("level"),
            verbose=log.integer("verbose"),
            file=log.string("file"),
        ),
    )


def env_overrides(environ: Mapping[str, str] | None = None) -> ConfigLayer:
    """Build a config layer from environment variables.

    Recognized variables:
        AGENTFENCE_LOG: log file path
        AGENTFENCE_ENABLED: 1/0, true/false, yes/no, on/off

    Args:
        environ: Environment mapping (defaults to ``os.environ``).

    Returns:
        ConfigLayer with values from the environment.
    """
    environ = os.environ if environ is None else environ
    layer = ConfigLayer()

    log_path = environ.get("AGENTFENCE_LOG")
    if log_path:
        layer.logging.file = log_path

    enabled = environ.get("AGENTFENCE_ENABLED")
    if enabled is not None:
        value = enabled.strip().lower()
        if value in _TRUE_STRINGS:
            layer.enabled = True
        elif value in _FALSE_STRINGS:
            layer.enabled = False
        else:
            _log.warning("Ignoring AGENTFENCE_ENABLED=%r: not a boolean", enabled)

    return layer


def load_config(
    cwd: str | None = None,
    paths: list[Path] | None = None,
    environ: Mapping[str, str] | None = None,
) -> Config:
    """Load and merge config from all sources.

    Priority order (highest to lowest):
    1. Environment variables
    2. Project config (<cwd>/.agentfence/config.yaml)
    3. User config (~/.config/agentfence/config.yaml or ~/.agentfence/)
    4. System config (/etc/agentfence/config.yaml)
    5. Built-in defaults

    Args:
        cwd: Project directory for project-level config.
        paths: Explicit config files, lowest priority first. Replaces the
            standard locations when given.
        environ: Environment mapping (defaults to ``os.environ``).

    Returns:
        Merged Config object.
    """
    layers: list[ConfigLayer] = []

    for path in paths if paths is not None else get_config_paths(cwd):
        data = load_yaml_file(path)
        if data:
            _log.debug("Loaded config from %s", path)
            layers.append(dict_to_layer(data, source=str(path)))

    layers.append(env_overrides(environ))

    return merge_layers(*layers)

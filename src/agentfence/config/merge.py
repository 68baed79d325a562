"""Field-by-field merge of configuration layers.

Each layer is a typed partial config; later layers override earlier ones
with these rules:
- Unset (None) fields keep the base value (enables partial configs)
- Rule and command lists are appended to the base list, without duplicates,
  so a layer can never drop an entry set by a lower layer
- ``wrapper`` is a single command prefix and is replaced as a whole
- Nested sections are merged field by field

The functions here are pure: inputs are never mutated.
"""

from __future__ import annotations

from typing import TypeVar

from agentfence.config.schema import (
    Config,
    ConfigLayer,
    FilesystemConfig,
    FilesystemLayer,
    LoggingConfig,
    LoggingLayer,
    NetworkConfig,
    NetworkLayer,
    SandboxConfig,
)


T = TypeVar("T")


def _pick(override: T | None, base: T) -> T:
    value = base if override is None else override
    if isinstance(value, list):
        return list(value)  # type: ignore[return-value]
    return value


def _extend(override: list[str] | None, base: list[str]) -> list[str]:
    """Append ``override`` to ``base``, keeping first occurrences in order."""
    return list(dict.fromkeys([*base, *(override or [])]))


def merge_filesystem(base: FilesystemConfig, layer: FilesystemLayer) -> FilesystemConfig:
    return FilesystemConfig(
        deny_read=_extend(layer.deny_read, base.deny_read),
        allow_write=_extend(layer.allow_write, base.allow_write),
        deny_write=_extend(layer.deny_write, base.deny_write),
        allow_git_config=_pick(layer.allow_git_config, base.allow_git_config),
    )


def merge_network(base: NetworkConfig, layer: NetworkLayer) -> NetworkConfig:
    return NetworkConfig(
        allowed_domains=_extend(layer.allowed_domains, base.allowed_domains),
        denied_domains=_extend(layer.denied_domains, base.denied_domains),
        allow_local_binding=_pick(layer.allow_local_binding, base.allow_local_binding),
    )


def merge_logging(base: LoggingConfig, layer: LoggingLayer) -> LoggingConfig:
    return LoggingConfig(
        level=_pick(layer.level, base.level),
        verbose=_pick(layer.verbose, base.verbose),
        file=_pick(layer.file, base.file),
    )


def merge_layer(base: Config, layer: ConfigLayer) -> Config:
    """Apply one layer on top of a resolved config.

    Args:
        base: The resolved configuration so far.
        layer: The layer with overriding values.

    Returns:
        A new Config with the layer applied.
    """
    sandbox = base.sandbox
    return Config(
        sandbox=SandboxConfig(
            enabled=_pick(layer.enabled, sandbox.enabled),
            bypassed_commands=_extend(layer.bypassed_commands, sandbox.bypassed_commands),
            unsandboxed_commands=_extend(
                layer.unsandboxed_commands, sandbox.unsandboxed_commands
            ),
            wrapper=_pick(layer.wrapper, sandbox.wrapper),
            filesystem=merge_filesystem(sandbox.filesystem, layer.filesystem),
            network=merge_network(sandbox.network, layer.network),
        ),
        logging=merge_logging(base.logging, layer.logging),
    )


def merge_layers(*layers: ConfigLayer, base: Config | None = None) -> Config:
    """Fold layers in order (later overrides earlier) onto the defaults.

    Args:
        *layers: Config layers, lowest priority first.
        base: Starting config. Defaults to ``Config()``.

    Returns:
        The merged Config.
    """
    result = base if base is not None else Config()
    for layer in layers:
        result = merge_layer(result, layer)
    return result

"""Configuration schema dataclasses for agentfence.

Defines the fully-resolved configuration (``Config``) and the partial,
per-file form (``ConfigLayer``) that is folded onto it. Every option and its
default lives here so the set of recognized settings is enumerable.
"""

from __future__ import annotations

from dataclasses import dataclass, field

DEFAULT_DENY_READ = [
    # where the secrets are
    "~/.ssh",
    "~/.aws",
    "~/.gnupg",
    "~/.claude",
    "~/.pi",
]

DEFAULT_ALLOW_WRITE = [
    ".",
    "/dev/stdout",
    "/dev/stderr",
    "/dev/null",
    "/dev/tty",
    "/dev/dtracehelper",
    "/dev/autofs_nowait",
    "/tmp/pi",
    "/private/tmp/pi",
]

DEFAULT_DENY_WRITE = [
    ".env",
    ".env.*",
    "*.pem",
    "*.key",
    ".claude",
    ".pi",
]


@dataclass
class FilesystemConfig:
    """Filesystem access rules.

    Read access is a blocklist (``deny_read``). Write access is an allowlist
    (``allow_write``, empty means unrestricted) with ``deny_write`` taking
    precedence over it.
    """

    deny_read: list[str] = field(default_factory=lambda: list(DEFAULT_DENY_READ))
    allow_write: list[str] = field(default_factory=lambda: list(DEFAULT_ALLOW_WRITE))
    deny_write: list[str] = field(default_factory=lambda: list(DEFAULT_DENY_WRITE))
    allow_git_config: bool = False  # Passed through to the sandbox backend


@dataclass
class NetworkConfig:
    """Network rules handed to the sandbox backend. Not enforced here."""

    allowed_domains: list[str] = field(default_factory=list)
    denied_domains: list[str] = field(default_factory=list)
    allow_local_binding: bool = False


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str | None = None  # DEBUG, INFO, WARNING, ERROR
    verbose: int | None = None  # 0-4, takes precedence over level
    file: str | None = None  # Log file path


@dataclass
class SandboxConfig:
    """Resolved sandbox policy.

    Attributes:
        enabled: Whether sandboxing should be attempted at all.
        bypassed_commands: Command patterns that always run without the
            sandbox wrapper.
        unsandboxed_commands: Command patterns auto-approved when the agent
            asks to escalate out of the sandbox.
        wrapper: Command prefix used by the wrapper backend (e.g. ``["srt"]``).
            Empty means commands are passed through unwrapped.
    """

    enabled: bool = True
    bypassed_commands: list[str] = field(default_factory=list)
    unsandboxed_commands: list[str] = field(default_factory=list)
    wrapper: list[str] = field(default_factory=list)
    filesystem: FilesystemConfig = field(default_factory=FilesystemConfig)
    network: NetworkConfig = field(default_factory=NetworkConfig)


@dataclass
class Config:
    """Root configuration object."""

    sandbox: SandboxConfig = field(default_factory=SandboxConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


# Partial layers: None means "not set in this file"


@dataclass
class FilesystemLayer:
    deny_read: list[str] | None = None
    allow_write: list[str] | None = None
    deny_write: list[str] | None = None
    allow_git_config: bool | None = None


@dataclass
class NetworkLayer:
    allowed_domains: list[str] | None = None
    denied_domains: list[str] | None = None
    allow_local_binding: bool | None = None


@dataclass
class LoggingLayer:
    level: str | None = None
    verbose: int | None = None
    file: str | None = None


@dataclass
class ConfigLayer:
    """One configuration source (a file or the environment) before merging."""

    enabled: bool | None = None
    bypassed_commands: list[str] | None = None
    unsandboxed_commands: list[str] | None = None
    wrapper: list[str] | None = None
    filesystem: FilesystemLayer = field(default_factory=FilesystemLayer)
    network: NetworkLayer = field(default_factory=NetworkLayer)
    logging: LoggingLayer = field(default_factory=LoggingLayer)

"""Sandbox backend protocol and implementations.

The backend is the OS-level isolation mechanism (bubblewrap, sandbox-exec,
a sandbox runtime CLI, ...). This package never enforces anything itself;
it asks the backend to wrap a command line and, after a failure, to explain
any sandbox violations it observed.

Implementations:
- PassthroughBackend: no isolation, commands run as given
- WrapperBackend: prefixes commands with a sandbox launcher
"""

from __future__ import annotations

import logging
import shlex
import shutil
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from agentfence.config.schema import SandboxConfig

_log = logging.getLogger("agentfence.terminal.backend")


@dataclass
class SandboxUnavailable(Exception):
    """Raised when the sandbox mechanism cannot be initialized."""

    reason: str

    def __str__(self) -> str:
        return f"Sandbox unavailable: {self.reason}"


class SandboxBackend(Protocol):
    """Protocol for the external sandbox mechanism."""

    async def initialize(self, config: SandboxConfig) -> None:
        """Prepare the mechanism for the given policy.

        Raises:
            SandboxUnavailable: If the mechanism cannot be used.
        """
        ...

    async def wrap_command(self, command: str) -> str:
        """Return the command line that runs ``command`` inside the sandbox."""
        ...

    def annotate_failure(self, command: str, stderr: str) -> str:
        """Return ``stderr`` possibly augmented with violation explanations.

        Implementations with nothing to add return ``stderr`` unchanged.
        """
        ...

    async def reset(self) -> None:
        """Release resources acquired by ``initialize``."""
        ...


class PassthroughBackend:
    """Backend that applies no isolation."""

    async def initialize(self, config: SandboxConfig) -> None:
        _log.debug("Passthrough sandbox backend initialized (no isolation)")

    async def wrap_command(self, command: str) -> str:
        return command

    def annotate_failure(self, command: str, stderr: str) -> str:
        return stderr

    async def reset(self) -> None:
        return None


class WrapperBackend:
    """Backend that runs commands through a sandbox launcher.

    The launcher receives the requested command as a single argument, e.g.
    ``srt 'npm test'``.
    """

    def __init__(self, prefix: list[str]) -> None:
        """Initialize the wrapper backend.

        Args:
            prefix: Launcher command and its fixed arguments.
        """
        if not prefix:
            raise ValueError("WrapperBackend requires a non-empty command prefix")
        self._prefix = list(prefix)
        self._initialized = False

    @property
    def prefix(self) -> list[str]:
        return list(self._prefix)

    async def initialize(self, config: SandboxConfig) -> None:
        launcher = self._prefix[0]
        if shutil.which(launcher) is None:
            raise SandboxUnavailable(f"launcher '{launcher}' not found on PATH")
        self._initialized = True
        _log.debug("Wrapper sandbox backend initialized: %s", shlex.join(self._prefix))

    async def wrap_command(self, command: str) -> str:
        return shlex.join([*self._prefix, command])

    def annotate_failure(self, command: str, stderr: str) -> str:
        return stderr

    async def reset(self) -> None:
        self._initialized = False


def create_backend(config: SandboxConfig) -> SandboxBackend:
    """Pick a backend for a resolved config."""
    if config.wrapper:
        return WrapperBackend(config.wrapper)
    return PassthroughBackend()

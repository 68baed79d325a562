"""Sandbox session lifecycle.

A SandboxSession decides once, at start, whether commands and file tools
run under the sandbox. The outcome is recorded in a SandboxState that is
handed to every guarded tool; nothing reads sandbox state from a global.
"""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass, field

from agentfence.config.loader import load_config
from agentfence.config.schema import Config, SandboxConfig
from agentfence.policy.access import AccessPolicy
from agentfence.policy.commands import CommandPolicy
from agentfence.terminal.backend import SandboxBackend, create_backend
from agentfence.terminal.supervisor import ProcessSupervisor

_log = logging.getLogger("agentfence.session")

SUPPORTED_PLATFORMS = ("linux", "darwin")


@dataclass
class SandboxState:
    """Whether the sandbox is active, and under which policy.

    Attributes:
        enabled: True once the backend initialized successfully.
        config: Resolved sandbox configuration.
        reason: Why the sandbox is disabled (None while enabled).
    """

    enabled: bool = False
    config: SandboxConfig = field(default_factory=SandboxConfig)
    reason: str | None = "not started"

    def access_policy(self, cwd: str) -> AccessPolicy:
        return AccessPolicy(cwd, self.config.filesystem)

    def command_policy(self) -> CommandPolicy:
        return CommandPolicy(
            bypassed_commands=self.config.bypassed_commands,
            unsandboxed_commands=self.config.unsandboxed_commands,
        )


class SandboxSession:
    """Owns the sandbox backend for one working directory.

    Example:
        session = SandboxSession("/path/to/project")
        state = await session.start()
        supervisor = session.create_supervisor()
        ...
        await session.shutdown()
    """

    def __init__(
        self,
        cwd: str,
        config: Config | None = None,
        backend: SandboxBackend | None = None,
        platform: str | None = None,
    ) -> None:
        """Initialize the session.

        Args:
            cwd: Project working directory.
            config: Pre-loaded configuration. Loaded from disk on start if None.
            backend: Sandbox mechanism. Chosen from the config if None.
            platform: Override for ``sys.platform`` (used by tests).
        """
        self.cwd = cwd
        self._config = config
        self._backend = backend
        self._platform = platform or sys.platform
        self._initialized = False
        self.state = SandboxState()

    @property
    def config(self) -> Config:
        if self._config is None:
            self._config = load_config(self.cwd)
        return self._config

    @property
    def backend(self) -> SandboxBackend:
        if self._backend is None:
            self._backend = create_backend(self.config.sandbox)
        return self._backend

    def create_supervisor(self) -> ProcessSupervisor:
        return ProcessSupervisor(backend=self.backend)

    def _disable(self, reason: str) -> SandboxState:
        self.state.enabled = False
        self.state.reason = reason
        return self.state

    async def start(self, disabled: bool = False) -> SandboxState:
        """Decide whether the sandbox is active and initialize the backend.

        Never raises: every failure leaves the sandbox disabled and is logged.

        Args:
            disabled: Set by ``--no-sandbox``.

        Returns:
            The populated SandboxState.
        """
        if disabled:
            _log.warning("Sandbox disabled via --no-sandbox")
            return self._disable("disabled via --no-sandbox")

        self.state.config = self.config.sandbox

        if not self.state.config.enabled:
            _log.info("Sandbox disabled via config")
            return self._disable("disabled via config")

        if self._platform not in SUPPORTED_PLATFORMS:
            _log.warning("Sandbox not supported on %s", self._platform)
            return self._disable(f"not supported on {self._platform}")

        try:
            await self.backend.initialize(self.state.config)
        except Exception as e:
            _log.error("Sandbox initialization failed: %s", e)
            return self._disable(f"initialization failed: {e}")

        self._initialized = True
        self.state.enabled = True
        self.state.reason = None
        _log.info(
            "Sandbox initialized: %d domains, %d write paths",
            len(self.state.config.network.allowed_domains),
            len(self.state.config.filesystem.allow_write),
        )
        return self.state

    async def shutdown(self) -> None:
        """Release the backend. Cleanup errors are logged and ignored."""
        if self._initialized:
            try:
                await self.backend.reset()
            except Exception as e:
                _log.debug("Ignoring sandbox reset error: %s", e)
            self._initialized = False
        self._disable("shut down")

    def describe(self) -> list[str]:
        """Human-readable summary of the active policy."""
        if not self.state.enabled:
            return [f"Sandbox is disabled ({self.state.reason})"]

        config = self.state.config
        return [
            "Sandbox Configuration:",
            "",
            "Bypassed Commands:",
            f"  {_join(config.bypassed_commands)}",
            "Unsandboxed Commands:",
            f"  {_join(config.unsandboxed_commands)}",
            "",
            "Network:",
            f"  Allowed: {_join(config.network.allowed_domains)}",
            f"  Denied: {_join(config.network.denied_domains)}",
            f"  Allow Local Binding: {str(config.network.allow_local_binding).lower()}",
            "",
            "Filesystem:",
            f"  Deny Read: {_join(config.filesystem.deny_read)}",
            f"  Allow Write: {_join(config.filesystem.allow_write)}",
            f"  Deny Write: {_join(config.filesystem.deny_write)}",
        ]


def _join(items: list[str]) -> str:
    return ", ".join(items) or "(none)"

"""Guarded file and shell tools for an agent.

Each tool follows the same decision rules:
- sandbox disabled: run directly
- default: enforce the access policy (files) or wrap the command (bash)
- ``unsandboxed=True``: ask the approver first, then run directly
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from agentfence.policy.access import AccessMode
from agentfence.policy.paths import resolve_path
from agentfence.session.state import SandboxState
from agentfence.terminal.cancellation import CancellationToken
from agentfence.terminal.result import ExecutionResult
from agentfence.terminal.supervisor import OutputCallback, ProcessSupervisor

_log = logging.getLogger("agentfence.session.tools")

EscalationKind = Literal["read", "write", "edit", "bash"]

# Asked before running outside the sandbox: (kind, path or command) -> approved
Approver = Callable[[EscalationKind, str], Awaitable[bool]]


@dataclass
class EscalationRefused(Exception):
    """Raised when an unsandboxed operation was not approved."""

    kind: EscalationKind
    subject: str
    reason: str

    def __str__(self) -> str:
        return f"Unsandboxed {self.kind} refused ({self.reason}): {self.subject}"


@dataclass
class EditError(Exception):
    """Raised when the text to replace is missing or ambiguous."""

    path: str
    occurrences: int

    def __str__(self) -> str:
        if self.occurrences == 0:
            return f"Text to replace not found in {self.path}"
        return (
            f"Text to replace occurs {self.occurrences} times in {self.path}; "
            "provide more context to make it unique"
        )


class SandboxedTools:
    """File and shell operations gated by the session's sandbox state."""

    def __init__(
        self,
        cwd: str,
        state: SandboxState,
        supervisor: ProcessSupervisor,
        approver: Approver | None = None,
    ) -> None:
        self.cwd = cwd
        self.state = state
        self.supervisor = supervisor
        self.approver = approver

    async def _escalate(self, kind: EscalationKind, subject: str) -> None:
        if self.approver is None:
            raise EscalationRefused(kind, subject, "no approver available")
        if not await self.approver(kind, subject):
            _log.info("Unsandboxed %s denied by user: %s", kind, subject)
            raise EscalationRefused(kind, subject, "denied by user")
        _log.info("Unsandboxed %s approved: %s", kind, subject)

    async def _authorize(self, path: str, mode: AccessMode, kind: EscalationKind, unsandboxed: bool) -> Path:
        """Resolve ``path`` after applying the sandbox decision rules."""
        if self.state.enabled:
            if unsandboxed:
                await self._escalate(kind, path)
            else:
                return Path(self.state.access_policy(self.cwd).require(path, mode))
        return Path(resolve_path(path, self.cwd))

    async def read(
        self,
        path: str,
        offset: int | None = None,
        limit: int | None = None,
        unsandboxed: bool = False,
    ) -> str:
        """Read a text file.

        Args:
            path: File path, absolute or relative to the working directory.
            offset: First line to return (1-based).
            limit: Maximum number of lines to return.
            unsandboxed: Bypass the read policy (requires approval).

        Raises:
            AccessDenied: The read policy denies the path.
            EscalationRefused: ``unsandboxed`` was not approved.
        """
        target = await self._authorize(path, "read", "read", unsandboxed)
        text = target.read_text(encoding="utf-8")
        if offset is None and limit is None:
            return text

        lines = text.splitlines(keepends=True)
        start = max((offset or 1) - 1, 0)
        end = start + limit if limit is not None else None
        return "".join(lines[start:end])

    async def write(self, path: str, content: str, unsandboxed: bool = False) -> int:
        """Write a text file, creating parent directories.

        Returns:
            Number of bytes written.
        """
        target = await self._authorize(path, "write", "write", unsandboxed)
        data = content.encode("utf-8")
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)
        _log.debug("Wrote %d bytes to %s", len(data), target)
        return len(data)

    async def edit(self, path: str, old_text: str, new_text: str, unsandboxed: bool = False) -> None:
        """Replace the single occurrence of ``old_text`` with ``new_text``.

        Raises:
            EditError: ``old_text`` is absent or occurs more than once.
        """
        target = await self._authorize(path, "write", "edit", unsandboxed)
        text = target.read_text(encoding="utf-8")
        occurrences = text.count(old_text) if old_text else 0
        if occurrences != 1:
            raise EditError(path=str(target), occurrences=occurrences)
        target.write_text(text.replace(old_text, new_text, 1), encoding="utf-8")

    async def bash(
        self,
        command: str,
        on_output: OutputCallback | None = None,
        cancel: CancellationToken | None = None,
        timeout: float | None = None,
        unsandboxed: bool = False,
    ) -> ExecutionResult:
        """Run a shell command.

        Commands matching ``bypassed_commands`` or ``unsandboxed_commands``
        run outside the sandbox without asking.

        Raises:
            EscalationRefused: ``unsandboxed`` was not approved.
            ExecutionTimeout: The timeout expired.
            ExecutionCancelled: ``cancel`` fired.
        """
        sandboxed = self.state.enabled
        if sandboxed:
            policy = self.state.command_policy()
            if policy.runs_unsandboxed(command):
                _log.debug("Running %r unsandboxed (matches %r)", command, policy.matching_pattern(command))
                sandboxed = False
            elif unsandboxed:
                await self._escalate("bash", command)
                sandboxed = False

        return await self.supervisor.execute(
            command,
            self.cwd,
            on_output=on_output,
            cancel=cancel,
            timeout=timeout,
            sandboxed=sandboxed,
        )

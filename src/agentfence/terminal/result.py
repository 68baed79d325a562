"""Shell execution result dataclass."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ExecutionStatus(Enum):
    """Lifecycle of a supervised execution.

    CREATED -> RUNNING -> one of the terminal states.
    """

    CREATED = "created"
    RUNNING = "running"
    COMPLETED = "completed"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self not in (ExecutionStatus.CREATED, ExecutionStatus.RUNNING)


@dataclass
class ExecutionResult:
    """Result of a command that ran to completion.

    Attributes:
        command: The command as requested (before sandbox wrapping).
        exit_code: Process exit code, or None if killed by a signal.
        signal: Signal name if the process was killed by a signal.
        duration_ms: Execution duration in milliseconds.
        sandboxed: True if the command ran through the sandbox backend.
        status: Always COMPLETED for a returned result; other terminal
            states are reported as exceptions.
    """

    command: str
    exit_code: int | None
    signal: str | None
    duration_ms: float
    sandboxed: bool
    status: ExecutionStatus = ExecutionStatus.COMPLETED

    @property
    def success(self) -> bool:
        """True if command completed with exit code 0."""
        return self.exit_code == 0

    def __repr__(self) -> str:
        """Concise repr for logs."""
        mode = "sandboxed" if self.sandboxed else "unsandboxed"
        if self.success:
            return f"<ExecutionResult ok, {mode}>"
        if self.signal:
            return f"<ExecutionResult killed by {self.signal}, {mode}>"
        return f"<ExecutionResult exit={self.exit_code}, {mode}>"

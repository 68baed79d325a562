"""Execution lifecycle errors.

Each error carries enough detail for the caller to render a precise message
(the duration that was exceeded, the signal that was sent, the OS error
that prevented the spawn).
"""

from __future__ import annotations

from dataclasses import dataclass


class ExecutionError(Exception):
    """Base class for failures of a supervised execution."""


@dataclass
class DirectoryNotFound(ExecutionError):
    """The working directory does not exist. No process was spawned."""

    path: str

    def __str__(self) -> str:
        return f"Working directory does not exist: {self.path}"


@dataclass
class ExecutionTimeout(ExecutionError):
    """The process group was killed after exceeding its time budget."""

    command: str
    timeout: float  # Seconds
    signal: str = "SIGKILL"

    def __str__(self) -> str:
        return f"Command timed out after {self.timeout:g}s (sent {self.signal})"


@dataclass
class ExecutionCancelled(ExecutionError):
    """The caller cancelled the execution and the process group was killed."""

    command: str
    signal: str = "SIGKILL"

    def __str__(self) -> str:
        return f"Command cancelled (sent {self.signal})"


@dataclass
class SpawnFailure(ExecutionError):
    """The OS failed to start the shell process."""

    command: str
    cause: OSError

    def __str__(self) -> str:
        return f"Failed to start command: {self.cause}"

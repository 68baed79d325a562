"""Supervised shell execution.

Provides the ProcessSupervisor, which runs a command (optionally wrapped by
a sandbox backend) in its own process group with streaming output, timeout
and cancellation.
"""

from agentfence.terminal.backend import (
    PassthroughBackend,
    SandboxBackend,
    SandboxUnavailable,
    WrapperBackend,
    create_backend,
)
from agentfence.terminal.cancellation import CancellationToken
from agentfence.terminal.errors import (
    DirectoryNotFound,
    ExecutionCancelled,
    ExecutionError,
    ExecutionTimeout,
    SpawnFailure,
)
from agentfence.terminal.result import ExecutionResult, ExecutionStatus
from agentfence.terminal.supervisor import ProcessSupervisor

__all__ = [
    "CancellationToken",
    "DirectoryNotFound",
    "ExecutionCancelled",
    "ExecutionError",
    "ExecutionResult",
    "ExecutionStatus",
    "ExecutionTimeout",
    "PassthroughBackend",
    "ProcessSupervisor",
    "SandboxBackend",
    "SandboxUnavailable",
    "SpawnFailure",
    "WrapperBackend",
    "create_backend",
]

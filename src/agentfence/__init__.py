"""agentfence: filesystem and command policy enforcement for coding agents.

Decides which paths an agent may read or write, which shell commands may
skip the OS sandbox, and supervises every spawned command so that timeouts
and cancellation never leave processes behind.
"""

__version__ = "0.1.0"

from agentfence.policy import (
    AccessDenied,
    AccessPolicy,
    CommandPolicy,
    is_bypassed,
    is_read_allowed,
    is_write_allowed,
    path_matches_pattern,
    tokenize_command,
)
from agentfence.session import (
    EditError,
    EscalationRefused,
    SandboxedTools,
    SandboxSession,
    SandboxState,
)
from agentfence.terminal import (
    CancellationToken,
    ExecutionResult,
    ProcessSupervisor,
)

__all__ = [
    "AccessDenied",
    "AccessPolicy",
    "CancellationToken",
    "CommandPolicy",
    "EditError",
    "EscalationRefused",
    "ExecutionResult",
    "ProcessSupervisor",
    "SandboxSession",
    "SandboxState",
    "SandboxedTools",
    "__version__",
    "is_bypassed",
    "is_read_allowed",
    "is_write_allowed",
    "path_matches_pattern",
    "tokenize_command",
]

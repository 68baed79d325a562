"""Sandbox session lifecycle and the guarded tools built on it."""

from agentfence.session.state import SandboxSession, SandboxState
from agentfence.session.tools import (
    Approver,
    EditError,
    EscalationRefused,
    SandboxedTools,
)

__all__ = [
    "Approver",
    "EditError",
    "EscalationRefused",
    "SandboxSession",
    "SandboxState",
    "SandboxedTools",
]

"""Policy decisions: filesystem access and sandbox bypass for commands.

Everything in this package is a pure decision function; nothing here
touches the filesystem or spawns processes.
"""

from agentfence.policy.access import (
    AccessDenied,
    AccessPolicy,
    RuleMatch,
    is_read_allowed,
    is_write_allowed,
)
from agentfence.policy.commands import (
    CommandPattern,
    CommandPolicy,
    is_bypassed,
    is_unsandboxed_command,
)
from agentfence.policy.paths import path_matches_pattern, resolve_path
from agentfence.policy.tokenizer import COMPOUND, is_compound, tokenize_command

__all__ = [
    "AccessDenied",
    "AccessPolicy",
    "COMPOUND",
    "CommandPattern",
    "CommandPolicy",
    "RuleMatch",
    "is_bypassed",
    "is_compound",
    "is_read_allowed",
    "is_unsandboxed_command",
    "is_write_allowed",
    "path_matches_pattern",
    "resolve_path",
    "tokenize_command",
]

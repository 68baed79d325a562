"""Command patterns that allow running outside the sandbox.

Patterns are tokenized the same way as commands and compared token by
token:

- Exact: ``npm test`` matches only ``npm test``
- Prefix: ``npm run *`` matches ``npm run``, ``npm run build``, ...
- ``*`` alone matches any simple command

Compound commands (``a && b``, ``a | b``, ``a > file``, ...) never match.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from agentfence.policy.tokenizer import COMPOUND, tokenize_command

_log = logging.getLogger("agentfence.policy.commands")

WILDCARD_TOKEN = "*"


@dataclass(frozen=True)
class CommandPattern:
    """A parsed bypass pattern."""

    source: str
    tokens: tuple[str, ...]  # Fixed tokens, without the trailing "*"
    prefix: bool

    @classmethod
    def parse(cls, pattern: str) -> CommandPattern | None:
        """Parse a configured pattern.

        Args:
            pattern: Pattern text from the configuration.

        Returns:
            The parsed pattern, or None for blank or compound patterns.
        """
        if not pattern or not pattern.strip():
            return None

        tokens = tokenize_command(pattern)
        if tokens is COMPOUND or not tokens:
            _log.debug("Ignoring unusable command pattern %r", pattern)
            return None

        if tokens[-1] == WILDCARD_TOKEN:
            return cls(source=pattern, tokens=tuple(tokens[:-1]), prefix=True)
        return cls(source=pattern, tokens=tuple(tokens), prefix=False)

    def matches(self, tokens: list[str]) -> bool:
        """Match a simple command's tokens against this pattern."""
        if self.prefix:
            if len(tokens) < len(self.tokens):
                return False
            return tuple(tokens[: len(self.tokens)]) == self.tokens
        return tuple(tokens) == self.tokens


def matching_pattern(command: str, patterns: Iterable[str]) -> str | None:
    """Return the first pattern that lets ``command`` bypass the sandbox.

    Args:
        command: The shell command.
        patterns: Configured patterns, in configuration order.

    Returns:
        The matching pattern text, or None.
    """
    tokens = tokenize_command(command)
    if tokens is COMPOUND:
        return None

    for text in patterns:
        parsed = CommandPattern.parse(text)
        if parsed is not None and parsed.matches(tokens):
            return text
    return None


def is_bypassed(command: str, patterns: Iterable[str]) -> bool:
    """Check whether a command matches any bypass pattern.

    Args:
        command: The shell command.
        patterns: Configured patterns. Blank entries are skipped.

    Returns:
        True if some pattern matches and the command is not compound.
    """
    return matching_pattern(command, patterns) is not None


# Name used by the escalation path for auto-approved commands
is_unsandboxed_command = is_bypassed


class CommandPolicy:
    """Bypass and auto-approval decisions for one resolved config."""

    def __init__(
        self,
        bypassed_commands: Iterable[str] = (),
        unsandboxed_commands: Iterable[str] = (),
    ) -> None:
        self.bypassed_commands = list(bypassed_commands)
        self.unsandboxed_commands = list(unsandboxed_commands)

    def should_bypass(self, command: str) -> bool:
        """True if the command runs without the sandbox wrapper."""
        return is_bypassed(command, self.bypassed_commands)

    def is_auto_approved(self, command: str) -> bool:
        """True if an escalation request for the command needs no prompt."""
        return is_bypassed(command, self.unsandboxed_commands)

    def runs_unsandboxed(self, command: str) -> bool:
        return self.should_bypass(command) or self.is_auto_approved(command)

    def matching_pattern(self, command: str) -> str | None:
        return matching_pattern(
            command, [*self.bypassed_commands, *self.unsandboxed_commands]
        )

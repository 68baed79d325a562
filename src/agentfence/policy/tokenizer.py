"""Shell-aware tokenization of commands for bypass matching.

A command is either a simple invocation, returned as a flat list of words,
or *compound*: it contains pipes, sequencing, control or redirection
operators, command substitution, or anything the lexer cannot make sense
of. Compound commands are never eligible for sandbox bypass, so no tokens
are exposed for them.

One trailing redirect from a short list of harmless forms (discarding or
merging output streams) is removed before lexing.
"""

from __future__ import annotations

import logging
import re
import shlex
from typing import Final

_log = logging.getLogger("agentfence.policy.tokenizer")


class _Compound:
    """Sentinel type for commands with shell structure."""

    _instance: _Compound | None = None

    def __new__(cls) -> _Compound:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "COMPOUND"

    def __bool__(self) -> bool:
        return False


COMPOUND: Final = _Compound()

TokenSequence = list[str]

# Ordered: more specific forms first. Only the first match is stripped.
SAFE_REDIRECT_SUFFIXES: Final[list[tuple[str, re.Pattern[str]]]] = [
    ("discard all output", re.compile(r"\s+1?>\s*/dev/null\s+2>&1\s*$")),
    ("discard all output", re.compile(r"\s+&>\s*/dev/null\s*$")),
    ("discard all output", re.compile(r"\s+>&\s*/dev/null\s*$")),
    ("discard stderr", re.compile(r"\s+2>\s*/dev/null\s*$")),
    ("discard stdout", re.compile(r"\s+1?>\s*/dev/null\s*$")),
    ("merge stderr into stdout", re.compile(r"\s+2>&1\s*$")),
]

_PUNCTUATION = set("();<>|&")

# Fragments that mean "run something else" even without operator tokens
_UNSAFE_FRAGMENTS = ("\n", "\r", "`", "$(")


def strip_safe_redirect(command: str) -> str:
    """Remove one trailing harmless redirect, if present.

    Args:
        command: Trimmed command string.

    Returns:
        The command without the redirect, or unchanged.
    """
    for label, pattern in SAFE_REDIRECT_SUFFIXES:
        match = pattern.search(command)
        if match:
            _log.debug("Stripped safe redirect (%s) from %r", label, command)
            return command[: match.start()]
    return command


def _is_operator(token: str) -> bool:
    return bool(token) and all(c in _PUNCTUATION for c in token)


def _lex(command: str) -> list[str]:
    lexer = shlex.shlex(command, posix=True, punctuation_chars=True)
    lexer.whitespace_split = True
    lexer.commenters = ""
    return list(lexer)


def tokenize_command(command: str) -> TokenSequence | _Compound:
    """Tokenize a shell command.

    Args:
        command: The command as the agent would pass it to ``bash -c``.

    Returns:
        A list of word tokens for a simple command, or ``COMPOUND``.
    """
    command = strip_safe_redirect(command.strip())

    if any(fragment in command for fragment in _UNSAFE_FRAGMENTS):
        return COMPOUND

    try:
        tokens = _lex(command)
    except ValueError as e:
        _log.debug("Could not tokenize %r: %s", command, e)
        return COMPOUND

    if any(_is_operator(token) for token in tokens):
        return COMPOUND

    return tokens


def is_compound(command: str) -> bool:
    """Check whether a command has shell structure beyond a simple invocation."""
    return tokenize_command(command) is COMPOUND

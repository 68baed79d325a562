"""Read/write access decisions for filesystem paths.

Reads follow a blocklist posture: anything is readable unless it matches a
``deny_read`` pattern. Writes follow least privilege: ``deny_write`` always
wins, and when ``allow_write`` is non-empty the path must match one of its
patterns.

The decision functions are pure and never raise. Missing or malformed rule
lists are treated as empty.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Literal

from agentfence.config.schema import FilesystemConfig, SandboxConfig
from agentfence.policy.paths import first_match, resolve_path

_log = logging.getLogger("agentfence.policy.access")

AccessMode = Literal["read", "write"]
RuleCategory = Literal["deny_read", "deny_write", "allow_write"]

FilesystemRules = FilesystemConfig | SandboxConfig | Mapping[str, Any] | None


@dataclass
class AccessDenied(Exception):
    """Raised when a path operation is denied by the access policy.

    Carries the data needed to explain the denial or to ask the user for
    an escalation.
    """

    path: str  # Resolved absolute path
    mode: AccessMode
    rule: RuleCategory
    pattern: str | None = None  # Matching pattern, None for "not in allow_write"

    def __str__(self) -> str:
        if self.pattern is None:
            return (
                f"Sandbox: {self.mode} denied for '{self.path}' "
                f"(not covered by {self.rule})"
            )
        return (
            f"Sandbox: {self.mode} denied for '{self.path}' "
            f"({self.rule} rule '{self.pattern}')"
        )


@dataclass
class RuleMatch:
    """Outcome of an access check with the rule responsible for it."""

    allowed: bool
    category: RuleCategory | None = None
    pattern: str | None = None


# Mapping keys for each rule list; camelCase is what JSON-speaking hosts send
_RULE_KEYS = {
    "deny_read": ("deny_read", "denyRead"),
    "allow_write": ("allow_write", "allowWrite"),
    "deny_write": ("deny_write", "denyWrite"),
}
_IGNORED_KEYS = frozenset({"allow_git_config", "allowGitConfig"})
_KNOWN_KEYS = frozenset(key for keys in _RULE_KEYS.values() for key in keys) | _IGNORED_KEYS


def _string_list(value: Any) -> list[str]:
    if not isinstance(value, (list, tuple)):
        return []
    return [p for p in value if isinstance(p, str) and p.strip()]


def _mapping_list(section: Mapping[str, Any], category: RuleCategory) -> list[str]:
    for key in _RULE_KEYS[category]:
        if key in section:
            return _string_list(section[key])
    return []


def _rule_lists(rules: FilesystemRules) -> tuple[list[str], list[str], list[str]]:
    """Normalize any accepted rules shape to (deny_read, allow_write, deny_write)."""
    if isinstance(rules, SandboxConfig):
        rules = rules.filesystem
    if isinstance(rules, FilesystemConfig):
        return (
            _string_list(rules.deny_read),
            _string_list(rules.allow_write),
            _string_list(rules.deny_write),
        )
    if isinstance(rules, Mapping):
        section = rules.get("filesystem", rules)
        if not isinstance(section, Mapping):
            return [], [], []
        unknown = [key for key in section if key not in _KNOWN_KEYS]
        if unknown:
            _log.warning("Ignoring unrecognized filesystem rule keys: %s", ", ".join(map(str, unknown)))
        return (
            _mapping_list(section, "deny_read"),
            _mapping_list(section, "allow_write"),
            _mapping_list(section, "deny_write"),
        )
    return [], [], []


def check_read(path: str, cwd: str, rules: FilesystemRules) -> RuleMatch:
    """Decide a read and report the responsible rule."""
    deny_read, _, _ = _rule_lists(rules)
    if not deny_read:
        return RuleMatch(allowed=True)

    absolute = resolve_path(path, cwd)
    pattern = first_match(absolute, deny_read, cwd)
    if pattern is not None:
        return RuleMatch(allowed=False, category="deny_read", pattern=pattern)
    return RuleMatch(allowed=True)


def check_write(path: str, cwd: str, rules: FilesystemRules) -> RuleMatch:
    """Decide a write and report the responsible rule."""
    _, allow_write, deny_write = _rule_lists(rules)
    absolute = resolve_path(path, cwd)

    pattern = first_match(absolute, deny_write, cwd)
    if pattern is not None:
        return RuleMatch(allowed=False, category="deny_write", pattern=pattern)

    if not allow_write:
        return RuleMatch(allowed=True)

    pattern = first_match(absolute, allow_write, cwd)
    if pattern is not None:
        return RuleMatch(allowed=True, category="allow_write", pattern=pattern)
    return RuleMatch(allowed=False, category="allow_write")


def is_read_allowed(path: str, cwd: str, rules: FilesystemRules) -> bool:
    """Check whether reading ``path`` is allowed.

    Args:
        path: Path to read (relative to cwd, absolute, or ``~``-relative).
        cwd: Working directory.
        rules: Filesystem rules (FilesystemConfig, SandboxConfig, mapping or None).

    Returns:
        True unless the path matches a ``deny_read`` pattern.
    """
    return check_read(path, cwd, rules).allowed


def is_write_allowed(path: str, cwd: str, rules: FilesystemRules) -> bool:
    """Check whether writing ``path`` is allowed.

    Args:
        path: Path to write (relative to cwd, absolute, or ``~``-relative).
        cwd: Working directory.
        rules: Filesystem rules (FilesystemConfig, SandboxConfig, mapping or None).

    Returns:
        False if the path matches ``deny_write``; otherwise True when
        ``allow_write`` is empty or one of its patterns matches.
    """
    return check_write(path, cwd, rules).allowed


class AccessPolicy:
    """Access checks bound to a working directory and a rule set."""

    def __init__(self, cwd: str, rules: FilesystemRules) -> None:
        self.cwd = cwd
        self.rules = rules

    def check_read(self, path: str) -> bool:
        return is_read_allowed(path, self.cwd, self.rules)

    def check_write(self, path: str) -> bool:
        return is_write_allowed(path, self.cwd, self.rules)

    def explain(self, path: str, mode: AccessMode) -> RuleMatch:
        """Return the decision for ``path`` together with the deciding rule."""
        if mode == "read":
            return check_read(path, self.cwd, self.rules)
        return check_write(path, self.cwd, self.rules)

    def require(self, path: str, mode: AccessMode) -> str:
        """Ensure access is allowed.

        Args:
            path: Path to check.
            mode: "read" or "write".

        Returns:
            The resolved absolute path.

        Raises:
            AccessDenied: If the policy denies the operation.
        """
        result = self.explain(path, mode)
        resolved = resolve_path(path, self.cwd)
        if not result.allowed:
            _log.debug("Access denied: %s (%s) by %s", resolved, mode, result.category)
            raise AccessDenied(
                path=resolved,
                mode=mode,
                rule=result.category or ("deny_read" if mode == "read" else "deny_write"),
                pattern=result.pattern,
            )
        return resolved

"""Path pattern matching for filesystem access rules.

Patterns come in a handful of shapes:

- Absolute paths: ``/etc/shadow``
- Home-relative paths: ``~/.ssh``, ``~``
- Working-directory relative paths: ``.``, ``./build``, ``src/generated``
- Bare names, optionally with wildcards: ``.env``, ``*.pem``
- Paths with wildcards: ``~/.config/*/token``, ``/var/log/**``

A pattern without ``*`` or ``?`` denotes the path itself and everything
nested beneath it. A pattern without a ``/`` is matched against path
segments instead of the whole path, so ``*.pem`` catches a key file at any
depth.
"""

from __future__ import annotations

import logging
import os
import re
from functools import lru_cache
from pathlib import Path

_log = logging.getLogger("agentfence.policy.paths")

WILDCARD_CHARS = ("*", "?")


def home_dir() -> str:
    """Return the current user's home directory as a string."""
    return str(Path.home())


def has_wildcard(pattern: str) -> bool:
    """Check whether a pattern contains glob wildcards."""
    return any(c in pattern for c in WILDCARD_CHARS)


def expand_home(value: str) -> str:
    """Expand a leading ``~`` or ``~/``.

    ``~user`` forms are left untouched.
    """
    if value == "~":
        return home_dir()
    if value.startswith("~/"):
        return home_dir() + value[1:]
    return value


def resolve_path(path: str, cwd: str) -> str:
    """Resolve a candidate path to an absolute, normalized path.

    Symlinks are not followed and the filesystem is not consulted: the
    decision is made on the path the caller asked for.

    Args:
        path: Path as provided by the caller (may be relative or use ``~``).
        cwd: Working directory used for relative paths.

    Returns:
        Absolute normalized path.
    """
    expanded = expand_home(path)
    if not os.path.isabs(expanded):
        expanded = os.path.join(cwd, expanded)
    return os.path.normpath(expanded)


def expand_pattern(pattern: str, cwd: str | None = None) -> str:
    """Expand ``~`` and working-directory relative forms in a pattern.

    Bare names (no ``/``) are returned unchanged so they keep matching by
    basename.

    Args:
        pattern: The configured pattern.
        cwd: Working directory for relative patterns. When None, relative
            patterns are left as they are.

    Returns:
        The expanded pattern.
    """
    pattern = expand_home(pattern.strip())

    if cwd is None or os.path.isabs(pattern):
        return _strip_trailing_slash(pattern)

    if pattern == ".":
        return os.path.normpath(cwd)

    if "/" in pattern:
        return os.path.normpath(os.path.join(cwd, pattern))

    return pattern


def _strip_trailing_slash(pattern: str) -> str:
    if len(pattern) > 1 and pattern.endswith("/"):
        return pattern.rstrip("/") or "/"
    return pattern


@lru_cache(maxsize=1024)
def compile_glob(pattern: str) -> re.Pattern[str]:
    """Compile a glob pattern to a regular expression.

    ``*`` matches any run of characters except ``/``, ``?`` matches one
    character except ``/`` and ``**`` matches across separators. A ``**/``
    sequence also matches zero directories. Everything else is literal and
    matching is case-sensitive.

    Args:
        pattern: Glob pattern.

    Returns:
        Compiled regex, to be used with ``fullmatch``.
    """
    parts: list[str] = []
    i = 0
    n = len(pattern)
    while i < n:
        c = pattern[i]
        if c == "*":
            if pattern.startswith("**/", i):
                parts.append("(?:.*/)?")
                i += 3
                continue
            if pattern.startswith("**", i):
                parts.append(".*")
                i += 2
                continue
            parts.append("[^/]*")
        elif c == "?":
            parts.append("[^/]")
        else:
            parts.append(re.escape(c))
        i += 1
    return re.compile("".join(parts), re.DOTALL)


def _segments(path: str) -> list[str]:
    return [s for s in path.split("/") if s]


def path_matches_pattern(path: str, pattern: str, cwd: str | None = None) -> bool:
    """Check whether an absolute path matches a filesystem pattern.

    Args:
        path: Absolute, normalized candidate path (see ``resolve_path``).
        pattern: Configured pattern.
        cwd: Working directory for relative patterns.

    Returns:
        True if the pattern covers the path.
    """
    if not pattern or not pattern.strip():
        return False

    expanded = expand_pattern(pattern, cwd)
    match_base = "/" not in expanded
    literal = not has_wildcard(expanded)

    if match_base:
        segments = _segments(path)
        if not segments:
            return False
        if literal:
            # The path is the named entry or lives somewhere beneath it
            return expanded in segments
        return compile_glob(expanded).fullmatch(segments[-1]) is not None

    if literal:
        if path == expanded:
            return True
        prefix = expanded if expanded.endswith("/") else expanded + "/"
        return path.startswith(prefix)

    return compile_glob(expanded).fullmatch(path) is not None


def first_match(path: str, patterns: list[str], cwd: str | None = None) -> str | None:
    """Return the first pattern covering the path, or None."""
    for pattern in patterns:
        if path_matches_pattern(path, pattern, cwd):
            _log.debug("Path %s matched pattern %r", path, pattern)
            return pattern
    return None

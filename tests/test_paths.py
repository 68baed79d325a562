"""Tests for filesystem pattern matching."""

from __future__ import annotations

import pytest

from agentfence.policy.paths import (
    compile_glob,
    expand_pattern,
    first_match,
    path_matches_pattern,
    resolve_path,
)

HOME = "/home/tester"
CWD = "/work/project"


@pytest.fixture(autouse=True)
def fake_home(monkeypatch):
    monkeypatch.setenv("HOME", HOME)


class TestResolvePath:
    """Tests for resolve_path."""

    def test_relative_joined_with_cwd(self):
        assert resolve_path("src/main.py", CWD) == "/work/project/src/main.py"

    def test_dot_segments_normalized(self):
        assert resolve_path("./a/../b.txt", CWD) == "/work/project/b.txt"

    def test_parent_escape(self):
        assert resolve_path("../other/file", CWD) == "/work/other/file"

    def test_absolute_unchanged(self):
        assert resolve_path("/etc/passwd", CWD) == "/etc/passwd"

    def test_tilde_expansion(self):
        assert resolve_path("~/.ssh/id_rsa", CWD) == f"{HOME}/.ssh/id_rsa"
        assert resolve_path("~", CWD) == HOME

    def test_other_user_tilde_is_relative(self):
        assert resolve_path("~bob/x", CWD) == "/work/project/~bob/x"


class TestExpandPattern:
    """Tests for pattern expansion."""

    def test_dot_is_cwd(self):
        assert expand_pattern(".", CWD) == CWD

    def test_dot_slash_relative(self):
        assert expand_pattern("./build", CWD) == "/work/project/build"

    def test_relative_with_separator(self):
        assert expand_pattern("src/generated", CWD) == "/work/project/src/generated"

    def test_bare_name_untouched(self):
        assert expand_pattern(".env", CWD) == ".env"
        assert expand_pattern("*.pem", CWD) == "*.pem"

    def test_home(self):
        assert expand_pattern("~/.aws", CWD) == f"{HOME}/.aws"

    def test_without_cwd_relative_left_alone(self):
        assert expand_pattern("./build") == "./build"


class TestLiteralPatterns:
    """Non-wildcard patterns cover the path and everything beneath it."""

    @pytest.mark.parametrize(
        "pattern",
        ["/etc/ssh", "/tmp/pi", f"{HOME}/.aws"],
    )
    def test_directory_prefix(self, pattern):
        assert path_matches_pattern(pattern, pattern)
        assert path_matches_pattern(f"{pattern}/x", pattern)
        assert path_matches_pattern(f"{pattern}/deep/nested/file.txt", pattern)

    @pytest.mark.parametrize(
        "pattern",
        ["/etc/ssh", "/tmp/pi", f"{HOME}/.aws"],
    )
    def test_sibling_with_suffix_not_matched(self, pattern):
        assert not path_matches_pattern(f"{pattern}-suffix", pattern)
        assert not path_matches_pattern(f"{pattern}backup/file", pattern)

    def test_tilde_ssh(self):
        assert path_matches_pattern(f"{HOME}/.ssh", "~/.ssh")
        assert path_matches_pattern(f"{HOME}/.ssh/id_ed25519", "~/.ssh")
        assert not path_matches_pattern(f"{HOME}/.ssh-backup", "~/.ssh")

    def test_tilde_alone_covers_home(self):
        assert path_matches_pattern(HOME, "~")
        assert path_matches_pattern(f"{HOME}/notes.txt", "~")
        assert not path_matches_pattern("/etc/hosts", "~")

    def test_trailing_slash_ignored(self):
        assert path_matches_pattern("/var/log/syslog", "/var/log/")

    def test_cwd_relative(self):
        assert path_matches_pattern("/work/project/src/a.py", ".", CWD)
        assert path_matches_pattern("/work/project/build/out", "./build", CWD)
        assert not path_matches_pattern("/work/projectx/a.py", ".", CWD)

    def test_root_pattern(self):
        assert path_matches_pattern("/anything/at/all", "/")

    def test_empty_pattern_never_matches(self):
        assert not path_matches_pattern("/a", "")
        assert not path_matches_pattern("/a", "   ")


class TestBasenamePatterns:
    """Patterns without a separator match by path segment."""

    def test_literal_basename_any_depth(self):
        assert path_matches_pattern("/work/project/.env", ".env")
        assert path_matches_pattern("/any/dir/.env", ".env")

    def test_literal_basename_not_partial(self):
        assert not path_matches_pattern("/work/project/.env.local", ".env")
        assert not path_matches_pattern("/work/project/notes.env.bak", ".env")

    def test_literal_basename_covers_directory_contents(self):
        assert path_matches_pattern("/work/project/.claude/settings.json", ".claude")

    def test_literal_basename_matches_any_ancestor_directory(self):
        # Every segment is tested, so a project nested in a ".pi" directory is covered too
        assert path_matches_pattern("/home/x/.pi/project/file.txt", ".pi")
        assert path_matches_pattern("/home/x/.pi/project/src/deep/file.txt", ".pi", "/home/x/.pi/project")

    def test_wildcard_basename_tests_last_segment_only(self):
        assert not path_matches_pattern("/work/certs.pem/readme.txt", "*.pem")

    def test_wildcard_basename(self):
        assert path_matches_pattern("/work/project/certs/server.pem", "*.pem")
        assert path_matches_pattern("/server.key", "*.key")
        assert not path_matches_pattern("/work/project/server.pem.txt", "*.pem")

    def test_env_star(self):
        assert path_matches_pattern("/work/project/.env.local", ".env.*")
        assert not path_matches_pattern("/work/project/.env", ".env.*")

    def test_question_mark(self):
        assert path_matches_pattern("/x/a1.log", "a?.log")
        assert not path_matches_pattern("/x/a12.log", "a?.log")

    def test_root_path_has_no_basename(self):
        assert not path_matches_pattern("/", "*")

    def test_case_sensitive(self):
        assert not path_matches_pattern("/x/SERVER.PEM", "*.pem")


class TestGlobPatterns:
    """Full-path wildcard patterns."""

    def test_star_does_not_cross_separator(self):
        assert path_matches_pattern("/var/log/app.log", "/var/log/*.log")
        assert not path_matches_pattern("/var/log/app/app.log", "/var/log/*.log")

    def test_double_star_crosses_separators(self):
        assert path_matches_pattern("/var/log/app/deep/app.log", "/var/log/**")
        assert path_matches_pattern("/var/log/app/deep/app.log", "/var/log/**/*.log")

    def test_double_star_slash_matches_zero_dirs(self):
        assert path_matches_pattern("/var/log/app.log", "/var/log/**/*.log")

    def test_home_wildcard(self):
        assert path_matches_pattern(f"{HOME}/.config/gh/hosts.yml", "~/.config/*/hosts.yml")

    def test_regex_metacharacters_literal(self):
        assert path_matches_pattern("/x/a+b(1).txt", "/x/a+b(1).*")
        assert not path_matches_pattern("/x/aab(1).txt", "/x/a+b(1).*")

    def test_compile_glob_cached(self):
        assert compile_glob("/a/*") is compile_glob("/a/*")


class TestFirstMatch:
    """Tests for first_match."""

    def test_returns_first_matching_pattern(self):
        patterns = ["*.key", ".env", "/work/project"]
        assert first_match("/work/project/.env", patterns, CWD) == ".env"

    def test_none_when_nothing_matches(self):
        assert first_match("/work/project/a.py", ["*.key", ".env"], CWD) is None

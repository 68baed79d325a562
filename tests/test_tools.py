"""Tests for the guarded file and shell tools."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

from agentfence.config.schema import FilesystemConfig, SandboxConfig
from agentfence.policy.access import AccessDenied
from agentfence.session.state import SandboxState
from agentfence.session.tools import EditError, EscalationRefused, SandboxedTools
from agentfence.terminal.backend import PassthroughBackend
from agentfence.terminal.supervisor import ProcessSupervisor

posix_only = pytest.mark.skipif(sys.platform == "win32", reason="requires a POSIX shell")


class TaggingBackend(PassthroughBackend):
    """Backend whose wrapped commands print a marker first."""

    async def wrap_command(self, command: str) -> str:
        return f"echo '[sandbox]'; {command}"


class RecordingApprover:
    """Approver that records requests and answers with a fixed decision."""

    def __init__(self, answer: bool):
        self.answer = answer
        self.requests: list[tuple[str, str]] = []

    async def __call__(self, kind: str, subject: str) -> bool:
        self.requests.append((kind, subject))
        return self.answer


def _config() -> SandboxConfig:
    return SandboxConfig(
        bypassed_commands=["git status"],
        unsandboxed_commands=["docker *"],
        filesystem=FilesystemConfig(
            deny_read=["secrets"],
            allow_write=["."],
            deny_write=[".env", "*.key"],
        ),
    )


@pytest.fixture
def project(tmp_path: Path) -> Path:
    project = tmp_path / "project"
    (project / "secrets").mkdir(parents=True)
    (project / "secrets" / "token.txt").write_text("s3cret\n")
    (project / "notes.txt").write_text("one\ntwo\nthree\nfour\n")
    return project


def _tools(project: Path, enabled: bool = True, approver=None) -> SandboxedTools:
    state = SandboxState(enabled=enabled, config=_config(), reason=None if enabled else "disabled via config")
    return SandboxedTools(
        str(project),
        state,
        ProcessSupervisor(backend=TaggingBackend()),
        approver=approver,
    )


class TestRead:
    """Tests for SandboxedTools.read."""

    @pytest.mark.asyncio
    async def test_allowed(self, project):
        assert await _tools(project).read("notes.txt") == "one\ntwo\nthree\nfour\n"

    @pytest.mark.asyncio
    async def test_offset_and_limit(self, project):
        tools = _tools(project)
        assert await tools.read("notes.txt", offset=2, limit=2) == "two\nthree\n"
        assert await tools.read("notes.txt", offset=4) == "four\n"
        assert await tools.read("notes.txt", limit=1) == "one\n"

    @pytest.mark.asyncio
    async def test_denied(self, project):
        with pytest.raises(AccessDenied) as exc_info:
            await _tools(project).read("secrets/token.txt")
        assert exc_info.value.mode == "read"
        assert exc_info.value.pattern == "secrets"

    @pytest.mark.asyncio
    async def test_unsandboxed_without_approver(self, project):
        with pytest.raises(EscalationRefused) as exc_info:
            await _tools(project).read("secrets/token.txt", unsandboxed=True)
        assert exc_info.value.reason == "no approver available"
        assert exc_info.value.kind == "read"

    @pytest.mark.asyncio
    async def test_unsandboxed_refused(self, project):
        approver = RecordingApprover(False)
        with pytest.raises(EscalationRefused) as exc_info:
            await _tools(project, approver=approver).read("secrets/token.txt", unsandboxed=True)
        assert exc_info.value.reason == "denied by user"
        assert approver.requests == [("read", "secrets/token.txt")]

    @pytest.mark.asyncio
    async def test_unsandboxed_approved(self, project):
        approver = RecordingApprover(True)
        tools = _tools(project, approver=approver)
        assert await tools.read("secrets/token.txt", unsandboxed=True) == "s3cret\n"

    @pytest.mark.asyncio
    async def test_unsandboxed_asks_even_when_allowed(self, project):
        approver = RecordingApprover(True)
        await _tools(project, approver=approver).read("notes.txt", unsandboxed=True)
        assert approver.requests == [("read", "notes.txt")]

    @pytest.mark.asyncio
    async def test_disabled_sandbox_runs_directly(self, project):
        approver = RecordingApprover(False)
        tools = _tools(project, enabled=False, approver=approver)
        assert await tools.read("secrets/token.txt") == "s3cret\n"
        assert await tools.read("secrets/token.txt", unsandboxed=True) == "s3cret\n"
        assert approver.requests == []


class TestWrite:
    """Tests for SandboxedTools.write."""

    @pytest.mark.asyncio
    async def test_allowed_creates_parents(self, project):
        written = await _tools(project).write("build/out/result.txt", "héllo")
        assert written == len("héllo".encode())
        assert (project / "build" / "out" / "result.txt").read_text(encoding="utf-8") == "héllo"

    @pytest.mark.asyncio
    async def test_outside_allowlist(self, project, tmp_path):
        with pytest.raises(AccessDenied) as exc_info:
            await _tools(project).write(str(tmp_path / "outside.txt"), "x")
        assert exc_info.value.rule == "allow_write"
        assert not (tmp_path / "outside.txt").exists()

    @pytest.mark.asyncio
    async def test_deny_write(self, project):
        with pytest.raises(AccessDenied):
            await _tools(project).write(".env", "TOKEN=1")
        with pytest.raises(AccessDenied):
            await _tools(project).write("certs/server.key", "x")
        assert not (project / ".env").exists()

    @pytest.mark.asyncio
    async def test_unsandboxed_approved(self, project):
        approver = RecordingApprover(True)
        await _tools(project, approver=approver).write(".env", "TOKEN=1", unsandboxed=True)
        assert (project / ".env").read_text() == "TOKEN=1"
        assert approver.requests == [("write", ".env")]


class TestEdit:
    """Tests for SandboxedTools.edit."""

    @pytest.mark.asyncio
    async def test_replaces_single_occurrence(self, project):
        await _tools(project).edit("notes.txt", "two", "2")
        assert (project / "notes.txt").read_text() == "one\n2\nthree\nfour\n"

    @pytest.mark.asyncio
    async def test_missing_text(self, project):
        with pytest.raises(EditError) as exc_info:
            await _tools(project).edit("notes.txt", "five", "5")
        assert exc_info.value.occurrences == 0
        assert "not found" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_ambiguous_text(self, project):
        with pytest.raises(EditError) as exc_info:
            await _tools(project).edit("notes.txt", "o", "0")
        assert exc_info.value.occurrences == 3
        assert (project / "notes.txt").read_text() == "one\ntwo\nthree\nfour\n"

    @pytest.mark.asyncio
    async def test_edit_checks_write_policy(self, project):
        (project / ".env").write_text("A=1\n")
        with pytest.raises(AccessDenied) as exc_info:
            await _tools(project).edit(".env", "A=1", "A=2")
        assert exc_info.value.mode == "write"

    @pytest.mark.asyncio
    async def test_edit_escalation_kind(self, project):
        (project / ".env").write_text("A=1\n")
        approver = RecordingApprover(True)
        await _tools(project, approver=approver).edit(".env", "A=1", "A=2", unsandboxed=True)
        assert approver.requests == [("edit", ".env")]
        assert (project / ".env").read_text() == "A=2\n"


@posix_only
class TestBash:
    """Tests for SandboxedTools.bash."""

    @staticmethod
    async def _run(tools: SandboxedTools, command: str, **kwargs) -> tuple[str, bool]:
        chunks: list[bytes] = []
        result = await tools.bash(command, on_output=chunks.append, **kwargs)
        return b"".join(chunks).decode(), result.sandboxed

    @pytest.mark.asyncio
    async def test_sandboxed_by_default(self, project):
        output, sandboxed = await self._run(_tools(project), "echo hi")
        assert sandboxed is True
        assert output == "[sandbox]\nhi\n"

    @pytest.mark.asyncio
    async def test_bypassed_command(self, project):
        output, sandboxed = await self._run(_tools(project), "git status 2>/dev/null || true")
        assert sandboxed is True

        approver = RecordingApprover(False)
        tools = _tools(project, approver=approver)
        tools.state.config.bypassed_commands = ["echo hi"]
        output, sandboxed = await self._run(tools, "echo hi")
        assert sandboxed is False
        assert output == "hi\n"
        assert approver.requests == []

    @pytest.mark.asyncio
    async def test_auto_approved_command(self, project):
        tools = _tools(project)
        tools.state.config.unsandboxed_commands = ["echo *"]
        output, sandboxed = await self._run(tools, "echo hello world", unsandboxed=True)
        assert sandboxed is False
        assert output == "hello world\n"

    @pytest.mark.asyncio
    async def test_compound_never_bypassed(self, project):
        tools = _tools(project)
        tools.state.config.bypassed_commands = ["*"]
        output, sandboxed = await self._run(tools, "echo a && echo b")
        assert sandboxed is True
        assert output == "[sandbox]\na\nb\n"

    @pytest.mark.asyncio
    async def test_unsandboxed_requires_approver(self, project):
        with pytest.raises(EscalationRefused) as exc_info:
            await _tools(project).bash("echo hi", unsandboxed=True)
        assert exc_info.value.reason == "no approver available"
        assert exc_info.value.kind == "bash"

    @pytest.mark.asyncio
    async def test_unsandboxed_refused(self, project):
        approver = RecordingApprover(False)
        with pytest.raises(EscalationRefused):
            await _tools(project, approver=approver).bash("echo hi", unsandboxed=True)
        assert approver.requests == [("bash", "echo hi")]

    @pytest.mark.asyncio
    async def test_unsandboxed_approved(self, project):
        approver = RecordingApprover(True)
        output, sandboxed = await self._run(_tools(project, approver=approver), "echo hi", unsandboxed=True)
        assert sandboxed is False
        assert output == "hi\n"

    @pytest.mark.asyncio
    async def test_disabled_sandbox(self, project):
        output, sandboxed = await self._run(_tools(project, enabled=False), "echo hi", unsandboxed=True)
        assert sandboxed is False
        assert output == "hi\n"

    @pytest.mark.asyncio
    async def test_runs_in_project(self, project):
        output, _ = await self._run(_tools(project, enabled=False), "cat notes.txt")
        assert output.startswith("one\n")

"""Command-line interface for agentfence."""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import dataclasses
import os
import signal
import sys
from collections.abc import Sequence

from rich.console import Console
from rich.markup import escape
from rich.prompt import Confirm
from rich.table import Table

from agentfence import __version__
from agentfence.config import Config, load_config
from agentfence.logging import setup_logging
from agentfence.policy import COMPOUND, AccessPolicy, CommandPolicy, tokenize_command
from agentfence.session import EscalationRefused, SandboxedTools, SandboxSession
from agentfence.terminal import (
    CancellationToken,
    ExecutionCancelled,
    ExecutionError,
    ExecutionResult,
    ExecutionTimeout,
)

console = Console()
err_console = Console(stderr=True)

EXIT_DENIED = 1
EXIT_TIMEOUT = 124
EXIT_INTERRUPTED = 130


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="agentfence",
        description="Filesystem and command policy enforcement for coding agents",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose",
        type=int,
        choices=range(0, 5),
        metavar="N",
        help="Log verbosity 0-4 (errors only .. trace)",
    )
    parser.add_argument(
        "--no-sandbox",
        action="store_true",
        help="Disable the sandbox for this invocation",
    )
    parser.add_argument(
        "--cwd",
        default=None,
        help="Project directory (default: current directory)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command")

    subparsers.add_parser("status", help="Show sandbox state and the resolved policy")

    read_parser = subparsers.add_parser("check-read", help="Check whether a path may be read")
    read_parser.add_argument("path")

    write_parser = subparsers.add_parser("check-write", help="Check whether a path may be written")
    write_parser.add_argument("path")

    command_parser = subparsers.add_parser(
        "check-command",
        help="Check whether a command would run inside the sandbox",
    )
    command_parser.add_argument("cmd", metavar="CMD")

    run_parser = subparsers.add_parser("run", help="Run a shell command under the sandbox")
    run_parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Kill the command after this many seconds",
    )
    run_parser.add_argument(
        "--unsandboxed",
        action="store_true",
        help="Run outside the sandbox (asks for confirmation)",
    )
    run_parser.add_argument("cmd", metavar="CMD")

    return parser


def run_cli(args: Sequence[str]) -> int:
    """Run the CLI with the given arguments."""
    parser = create_parser()
    parsed = parser.parse_args(args)

    if parsed.command is None:
        parser.print_help()
        return 1

    cwd = os.path.abspath(parsed.cwd or os.getcwd())
    config = load_config(cwd)

    logging_config = config.logging
    if parsed.verbose is not None:
        logging_config = dataclasses.replace(logging_config, verbose=parsed.verbose)
    setup_logging(logging_config, force=True)

    if parsed.command == "status":
        return asyncio.run(_status(cwd, config, parsed.no_sandbox))
    elif parsed.command == "check-read":
        return _check_path(cwd, config, parsed.path, "read")
    elif parsed.command == "check-write":
        return _check_path(cwd, config, parsed.path, "write")
    elif parsed.command == "check-command":
        return _check_command(config, parsed.cmd)
    elif parsed.command == "run":
        try:
            return asyncio.run(
                _run(cwd, config, parsed.cmd, parsed.timeout, parsed.unsandboxed, parsed.no_sandbox)
            )
        except KeyboardInterrupt:
            return EXIT_INTERRUPTED
    else:
        parser.print_help()
        return 1


async def _status(cwd: str, config: Config, no_sandbox: bool) -> int:
    session = SandboxSession(cwd, config=config)
    state = await session.start(disabled=no_sandbox)
    try:
        if state.enabled:
            console.print("[bold green]Sandbox: enabled[/bold green]")
        else:
            console.print(f"[bold yellow]Sandbox: {escape(state.reason or 'disabled')}[/bold yellow]")

        sandbox = config.sandbox
        table = Table(title="Sandbox Policy")
        table.add_column("Setting", style="bold")
        table.add_column("Value")

        rows = [
            ("Backend", type(session.backend).__name__),
            ("Bypassed commands", sandbox.bypassed_commands),
            ("Unsandboxed commands", sandbox.unsandboxed_commands),
            ("Deny read", sandbox.filesystem.deny_read),
            ("Allow write", sandbox.filesystem.allow_write),
            ("Deny write", sandbox.filesystem.deny_write),
            ("Allowed domains", sandbox.network.allowed_domains),
            ("Denied domains", sandbox.network.denied_domains),
            ("Allow local binding", str(sandbox.network.allow_local_binding).lower()),
        ]
        for name, value in rows:
            if isinstance(value, list):
                value = "\n".join(value) or "(none)"
            table.add_row(name, escape(value))

        console.print(table)
    finally:
        await session.shutdown()
    return 0


def _check_path(cwd: str, config: Config, path: str, mode: str) -> int:
    policy = AccessPolicy(cwd, config.sandbox.filesystem)
    result = policy.explain(path, "read" if mode == "read" else "write")

    verdict = "[green]allowed[/green]" if result.allowed else "[red]denied[/red]"
    console.print(f"{mode} {escape(path)}: {verdict}")
    if result.category:
        detail = f"{result.category} '{result.pattern}'" if result.pattern else f"not in {result.category}"
        console.print(f"  rule: {escape(detail)}")
    return 0 if result.allowed else EXIT_DENIED


def _check_command(config: Config, command: str) -> int:
    policy = CommandPolicy(
        bypassed_commands=config.sandbox.bypassed_commands,
        unsandboxed_commands=config.sandbox.unsandboxed_commands,
    )
    tokens = tokenize_command(command)

    if tokens is COMPOUND:
        console.print("compound command: always sandboxed")
    elif policy.should_bypass(command):
        console.print(f"bypassed (matches '{escape(policy.matching_pattern(command) or '')}')")
    elif policy.is_auto_approved(command):
        console.print(f"unsandboxed, auto-approved (matches '{escape(policy.matching_pattern(command) or '')}')")
    else:
        console.print("sandboxed")
    return 0


async def _confirm(kind: str, subject: str) -> bool:
    prompt = f"Allow running without sandbox?\n\n  {escape(subject)}\n"
    return await asyncio.to_thread(Confirm.ask, prompt, console=err_console, default=False)


def _write_output(chunk: bytes) -> None:
    sys.stdout.buffer.write(chunk)
    sys.stdout.flush()


async def _run(
    cwd: str,
    config: Config,
    command: str,
    timeout: float | None,
    unsandboxed: bool,
    no_sandbox: bool,
) -> int:
    session = SandboxSession(cwd, config=config)
    state = await session.start(disabled=no_sandbox)
    tools = SandboxedTools(
        cwd,
        state,
        session.create_supervisor(),
        approver=_confirm if sys.stdin.isatty() else None,
    )

    cancel = CancellationToken()
    loop = asyncio.get_running_loop()
    with contextlib.suppress(NotImplementedError, RuntimeError):
        loop.add_signal_handler(signal.SIGINT, cancel.cancel, "interrupted")

    try:
        result = await tools.bash(
            command,
            on_output=_write_output,
            cancel=cancel,
            timeout=timeout,
            unsandboxed=unsandboxed,
        )
    except ExecutionTimeout as e:
        err_console.print(f"[red]{escape(str(e))}[/red]")
        return EXIT_TIMEOUT
    except ExecutionCancelled:
        err_console.print("[yellow]Interrupted[/yellow]")
        return EXIT_INTERRUPTED
    except (EscalationRefused, ExecutionError) as e:
        err_console.print(f"[red]{escape(str(e))}[/red]")
        return 1
    finally:
        with contextlib.suppress(NotImplementedError, RuntimeError):
            loop.remove_signal_handler(signal.SIGINT)
        await session.shutdown()

    return _exit_code(result)


def _exit_code(result: ExecutionResult) -> int:
    if result.exit_code is not None:
        return result.exit_code
    # Killed by a signal: follow the shell convention
    try:
        return 128 + signal.Signals[result.signal or ""].value
    except KeyError:
        return 1


def main() -> int:
    return run_cli(sys.argv[1:])

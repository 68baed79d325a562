"""CLI entry point for agentfence."""

import sys


def main() -> int:
    """Main entry point for agentfence CLI."""
    from agentfence.cli import run_cli

    return run_cli(sys.argv[1:])


if __name__ == "__main__":
    sys.exit(main())

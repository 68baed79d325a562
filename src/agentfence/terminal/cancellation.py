"""Cooperative cancellation token for supervised executions."""

from __future__ import annotations

import asyncio
import logging

_log = logging.getLogger("agentfence.terminal.cancellation")


class CancellationToken:
    """A one-shot cancellation signal passed into ``ProcessSupervisor.execute``.

    The token may be shared by several executions; cancelling it stops all
    of them. Cancelling twice is a no-op.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self.reason: str | None = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str | None = None) -> None:
        """Request cancellation.

        Args:
            reason: Optional human-readable reason, kept for diagnostics.
        """
        if self._event.is_set():
            return
        self.reason = reason
        self._event.set()
        _log.debug("Cancellation requested%s", f": {reason}" if reason else "")

    async def wait(self) -> None:
        """Wait until cancellation is requested."""
        await self._event.wait()

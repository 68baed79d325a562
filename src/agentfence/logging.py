"""Logging setup for agentfence.

Everything logs below the ``agentfence`` logger. Output goes to a file when
``logging.file`` or ``AGENTFENCE_LOG`` names one; otherwise to stderr, but
only on a terminal so a host that pipes our stderr never sees log noise.

``--verbose N`` picks the level: 0 error, 1 warning, 2 info, 3 debug,
4 trace (per-execution state transitions).
"""

from __future__ import annotations

import logging
import os
import sys
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from agentfence.config.schema import LoggingConfig

TRACE = 5
logging.addLevelName(TRACE, "TRACE")

VERBOSITY_LEVELS = (logging.ERROR, logging.WARNING, logging.INFO, logging.DEBUG, TRACE)

DEFAULT_LEVEL = logging.INFO

LOG_FORMAT = "%(asctime)s %(levelname)s: %(message)s"
DATE_FORMAT = "%H:%M:%S"

logger = logging.getLogger("agentfence")

_configured = False


class _LowercaseLevelFormatter(logging.Formatter):
    """Formats a copy of the record so other handlers keep the real level name."""

    def format(self, record: logging.LogRecord) -> str:
        record = logging.makeLogRecord(record.__dict__)
        record.levelname = record.levelname.lower()
        return super().format(record)


def resolve_level(config: LoggingConfig | None) -> int:
    """Numeric level for a logging config; ``verbose`` wins over ``level``."""
    if config is None:
        return DEFAULT_LEVEL
    if config.verbose is not None:
        return VERBOSITY_LEVELS[max(0, min(config.verbose, len(VERBOSITY_LEVELS) - 1))]
    if config.level:
        level = logging.getLevelName(config.level.upper())
        if isinstance(level, int):
            return level
    return DEFAULT_LEVEL


def _open_handler(config: LoggingConfig | None) -> logging.Handler | None:
    path = (config.file if config is not None else None) or os.environ.get("AGENTFENCE_LOG")
    interactive = sys.stderr.isatty()

    if path:
        try:
            return logging.FileHandler(os.path.expanduser(path), mode="a", encoding="utf-8")
        except OSError as e:
            if not interactive:
                return None
            print(f"[agentfence] Cannot open log file {path}: {e}", file=sys.stderr)

    return logging.StreamHandler(sys.stderr) if interactive else None


def setup_logging(config: LoggingConfig | None = None, *, force: bool = False) -> None:
    """Configure the ``agentfence`` logger.

    Only the first call has an effect unless ``force`` is set, in which
    case the handlers installed earlier are closed and replaced.
    """
    global _configured
    if _configured and not force:
        return
    _configured = True

    for old in list(logger.handlers):
        logger.removeHandler(old)
        old.close()

    level = resolve_level(config)
    logger.setLevel(level)

    handler = _open_handler(config)
    if handler is None:
        return
    handler.setLevel(level)
    handler.setFormatter(_LowercaseLevelFormatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    logger.addHandler(handler)


def get_logger(name: str | None = None) -> logging.Logger:
    """The ``agentfence`` logger, or its child ``agentfence.<name>``."""
    return logger.getChild(name) if name else logger

"""Logging helpers for Tredgate."""
import logging
import sys

from tredgate.config import LOG_DATE_FORMAT, LOG_FORMAT

_logging_configured = False


def configure_logging(level="INFO", stream=None, force: bool = False) -> None:
    """Install a single stream handler on the ``tredgate`` logger.

    Args:
        level: Level name or number, e.g. "DEBUG".
        stream: Output stream, stderr by default.
        force: Replace a handler installed by an earlier call.
    """
    global _logging_configured

    if _logging_configured and not force:
        return

    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT))

    root = logging.getLogger("tredgate")
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(level)

    _logging_configured = True


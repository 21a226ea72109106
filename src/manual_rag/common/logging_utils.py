"""manual_rag.common.logging_utils

Console logging setup for entry points (API startup, CLI, ingestion script).

Library modules only create loggers with ``logging.getLogger(__name__)``;
handlers and levels are configured here, once, by whoever owns the process.
"""

from __future__ import annotations

import logging

_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
_DATEFMT = "%Y-%m-%d %H:%M:%S"


def parse_level(level: str | int) -> int:
    """Translate a level name (``"INFO"``, ``"warn"``) or number (``"20"``) to an int.

    Raises
    ------
    ValueError
        If the level is blank or unknown.
    """
    if isinstance(level, int):
        return level
    if not isinstance(level, str) or not level.strip():
        raise ValueError("log level must be a non-empty string (e.g., 'INFO', 'DEBUG')")
    name = level.strip().upper()
    if name == "WARN":
        name = "WARNING"
    value = logging.getLevelName(name)
    if isinstance(value, int):
        return value
    try:
        return int(name)
    except ValueError as e:
        raise ValueError(f"Unknown log level: {level!r}") from e


def configure_logging(level: str | int = "INFO", logger_name: str | None = None) -> None:
    """Configure console logging with a consistent format.

    Safe to call repeatedly: an existing stream handler is reconfigured instead
    of adding a duplicate.

    Parameters
    ----------
    level : str or int, optional
        Level name or number. Defaults to ``"INFO"``.
    logger_name : str or None, optional
        Logger to configure. Defaults to the root logger.
    """
    target = logging.getLogger(logger_name) if logger_name else logging.getLogger()
    target.setLevel(parse_level(level))
    formatter = logging.Formatter(fmt=_FORMAT, datefmt=_DATEFMT)

    for handler in target.handlers:
        if isinstance(handler, logging.StreamHandler):
            handler.setFormatter(formatter)
            handler.setLevel(target.level)
            return

    handler = logging.StreamHandler()
    handler.setLevel(target.level)
    handler.setFormatter(formatter)
    target.addHandler(handler)


__all__ = ["configure_logging", "parse_level"]

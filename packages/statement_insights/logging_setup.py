"""Logging for ``statement_insights``.

Library modules log ``event key=value`` lines (``enrich:cache_hit key=...``,
``remote:retry attempt=2 ...``) through ``get_logger("statement_insights.<module>")``
and never attach handlers. Only entrypoints call :func:`configure_logging`:
the CLI root callback does, passing its ``--log-level`` option.

Level resolution, first hit wins: the explicit argument, ``INSIGHTS_LOG_LEVEL``,
``INFO``. Unknown level names fall back to ``INFO``.

:func:`reset_logging` undoes the configuration; test suites that drive the CLI
in-process call it so later tests see the stdlib defaults again.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import IO

PKG_LOGGER_NAME = "statement_insights"
LEVEL_ENV = "INSIGHTS_LOG_LEVEL"
DEFAULT_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"

_handler: logging.Handler | None = None


def resolve_level(level: int | str | None = None) -> int:
    if isinstance(level, int):
        return level
    if level is None:
        level = os.getenv(LEVEL_ENV)
        if not level:
            return logging.INFO
    name = level.strip().upper()
    if name.isdigit():
        return int(name)
    numeric = logging.getLevelNamesMapping().get(name)
    return numeric if numeric is not None else logging.INFO


def is_configured() -> bool:
    return _handler is not None


def configure_logging(
    level: int | str | None = None,
    *,
    fmt: str | None = None,
    stream: IO[str] | None = None,
) -> None:
    """Install the package's single stream handler; later calls are no-ops.

    ``stream`` defaults to the ``sys.stderr`` current at call time.
    """

    global _handler
    if _handler is not None:
        return

    logger = logging.getLogger(PKG_LOGGER_NAME)
    for h in list(logger.handlers):
        if isinstance(h, logging.NullHandler):
            logger.removeHandler(h)

    resolved = resolve_level(level)
    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    handler.setLevel(resolved)
    handler.setFormatter(logging.Formatter(fmt or DEFAULT_FORMAT))
    logger.setLevel(resolved)
    logger.addHandler(handler)
    # Records stop here; the root logger would print them twice.
    logger.propagate = False
    _handler = handler


def reset_logging() -> None:
    """Remove the handler installed by :func:`configure_logging`."""

    global _handler
    logger = logging.getLogger(PKG_LOGGER_NAME)
    if _handler is not None:
        logger.removeHandler(_handler)
        _handler = None
    logger.setLevel(logging.NOTSET)
    logger.propagate = True


def get_logger(name: str) -> logging.Logger:
    """Named logger; the package root stays silent (``NullHandler``) until configured."""

    pkg_logger = logging.getLogger(PKG_LOGGER_NAME)
    if _handler is None and not pkg_logger.handlers:
        pkg_logger.addHandler(logging.NullHandler())
    return logging.getLogger(name)


__all__ = [
    "DEFAULT_FORMAT",
    "LEVEL_ENV",
    "PKG_LOGGER_NAME",
    "configure_logging",
    "get_logger",
    "is_configured",
    "reset_logging",
    "resolve_level",
]

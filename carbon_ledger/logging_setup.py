"""Logging for ``carbon_ledger``.

Library modules call ``get_logger("carbon_ledger.<module>")`` and never attach
handlers. Hosts (the CLI root callback, or an embedding application) call
:func:`configure_logging` once; until then the ``"carbon_ledger"`` logger
carries only a ``NullHandler`` and stays silent.

The level comes from the ``level`` argument, then ``CARBON_LEDGER_LOG_LEVEL``,
then ``WARNING``. Level names are case-insensitive; numeric strings work too.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import IO

_ROOT_NAME = "carbon_ledger"
_LEVEL_ENV = "CARBON_LEDGER_LOG_LEVEL"
_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"

# Handler installed by ``configure_logging``; ``None`` while unconfigured.
_handler: logging.Handler | None = None


def _resolve_level(level: int | str | None) -> int:
    if level is None:
        level = os.getenv(_LEVEL_ENV) or logging.WARNING
    if isinstance(level, int):
        return level
    name = level.strip().upper()
    if name.isdigit():
        return int(name)
    resolved = logging.getLevelNamesMapping().get(name)
    if resolved is None:
        raise ValueError(f"unknown log level {level!r}")
    return resolved


def configure_logging(
    level: int | str | None = None,
    *,
    fmt: str | None = None,
    stream: IO[str] | None = None,
) -> None:
    """Attach one ``StreamHandler`` to the package logger; later calls are no-ops.

    ``stream`` defaults to ``sys.stderr`` as it is when this runs, so test
    runners that swap the stream capture the output.
    """

    global _handler
    if _handler is not None:
        return

    resolved = _resolve_level(level)
    root = logging.getLogger(_ROOT_NAME)
    for existing in [h for h in root.handlers if isinstance(h, logging.NullHandler)]:
        root.removeHandler(existing)

    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    handler.setFormatter(logging.Formatter(fmt or _FORMAT))
    root.addHandler(handler)
    root.setLevel(resolved)
    # Records stop here; the host's root logger does not print them twice.
    root.propagate = False
    _handler = handler


def reset_logging() -> None:
    """Undo :func:`configure_logging`, leaving the package logger silent again."""

    global _handler
    root = logging.getLogger(_ROOT_NAME)
    if _handler is not None:
        root.removeHandler(_handler)
        _handler = None
    root.setLevel(logging.NOTSET)
    root.propagate = True
    if not root.handlers:
        root.addHandler(logging.NullHandler())


def get_logger(name: str) -> logging.Logger:
    root = logging.getLogger(_ROOT_NAME)
    if _handler is None and not root.handlers:
        root.addHandler(logging.NullHandler())
    return logging.getLogger(name)


__all__ = ["configure_logging", "get_logger", "reset_logging"]

"""Common output and logging setup for the command line programs."""

from __future__ import annotations

import json
import logging
import os
import sys
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Callable, TextIO

_LOGGER_NAME = "knevent"
_RED = "\x1b[31m"
_RESET = "\x1b[0m"


@dataclass
class OutputContext:
    """Where the output goes and how logging is configured."""

    stdout: TextIO | None = None
    stderr: TextIO | None = None
    log_level: int = logging.INFO
    logger: logging.Logger | None = None
    err_prefix: str = "Error:"
    log_file: Path | None = None
    initial: bool = False


LoggingSetup = Callable[[OutputContext], OutputContext]

_INITIAL = OutputContext(initial=True)


def initial_context() -> OutputContext:
    """Return the shared context used before the output is set up."""
    return _INITIAL


def _is_fancy(stream: TextIO) -> bool:
    if os.environ.get("NO_COLOR"):
        return False
    if os.environ.get("FORCE_COLOR"):
        return True
    isatty = getattr(stream, "isatty", None)
    return bool(isatty and isatty())


class _JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "level": record.levelname.lower(),
            "ts": record.created,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        entry.update(getattr(record, "fields", None) or {})
        if record.exc_info:
            entry["error"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


def _install_handler(
    stream: TextIO, level: int, formatter: logging.Formatter
) -> logging.Logger:
    logger = logging.getLogger(_LOGGER_NAME)
    for handler in list(logger.handlers):
        if getattr(handler, "_knevent_owned", False):
            logger.removeHandler(handler)
    handler = logging.StreamHandler(stream)
    handler.setFormatter(formatter)
    handler.setLevel(level)
    handler._knevent_owned = True  # type: ignore[attr-defined]
    logger.addHandler(handler)
    logger.setLevel(level)
    return logger


def default_logging_setup(level: int) -> LoggingSetup:
    """Log human readable messages to the context's stderr at ``level``."""

    def setup(ctx: OutputContext) -> OutputContext:
        stream = ctx.stderr or sys.stderr
        logger = _install_handler(stream, level, logging.Formatter("%(message)s"))
        return replace(ctx, log_level=level, logger=logger)

    return setup


def simplified_logging_setup(level: int) -> LoggingSetup:
    """Log JSON lines to the context's stderr at ``level``."""

    def setup(ctx: OutputContext) -> OutputContext:
        stream = ctx.stderr or sys.stderr
        logger = _install_handler(stream, level, _JsonFormatter())
        return replace(ctx, log_level=level, logger=logger)

    return setup


def setup_output(ctx: OutputContext, logging_setup: LoggingSetup) -> OutputContext:
    """Resolve the output streams, apply the logging setup and return the result."""
    ctx = replace(ctx, initial=False)
    if ctx.stdout is None or ctx.stdout is sys.stderr:
        ctx.stdout = sys.stdout
    if ctx.stderr is None:
        ctx.stderr = sys.stderr
    ctx = logging_setup(ctx)
    if _is_fancy(ctx.stdout):
        ctx.err_prefix = f"{_RED}Error:{_RESET}"
    return ctx
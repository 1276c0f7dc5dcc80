"""Command that sends the event given in the environment to its sink."""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import replace
from typing import Mapping, TextIO

from knevent.errors import KnEventError
from knevent.ics import IcsApp
from knevent.output import initial_context, setup_output, simplified_logging_setup
from knevent.sender import Binding


def run(
    environ: Mapping[str, str] | None = None,
    binding: Binding | None = None,
    err: TextIO | None = None,
) -> None:
    """Send the event from the environment, logging JSON lines to ``err``."""
    ctx = setup_output(
        replace(initial_context(), stderr=err),
        simplified_logging_setup(logging.DEBUG),
    )
    logger = ctx.logger or logging.getLogger("knevent")
    app = IcsApp() if binding is None else IcsApp(binding=binding)
    try:
        app.send_from_env(None, environ)
    except KnEventError as exc:
        logger.error("%s", exc, extra={"fields": {"error": str(exc)}})
        raise


def main(argv: list[str] | None = None) -> int:
    """Entry point of the in-cluster sender; returns the exit code."""
    parser = argparse.ArgumentParser(
        prog="ics",
        description="Send the event encoded in K_EVENT to the sink in K_SINK.",
    )
    parser.parse_args(argv)
    try:
        run()
    except KnEventError:
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
import io
import json
import logging
import sys

import pytest

from knevent.output import (
    OutputContext,
    default_logging_setup,
    initial_context,
    setup_output,
    simplified_logging_setup,
)


@pytest.fixture(autouse=True)
def restore_logger():
    logger = logging.getLogger("knevent")
    handlers = list(logger.handlers)
    level = logger.level
    yield
    logger.handlers[:] = handlers
    logger.setLevel(level)


@pytest.fixture
def plain(monkeypatch):
    monkeypatch.setenv("NO_COLOR", "1")
    monkeypatch.delenv("FORCE_COLOR", raising=False)


def test_setup_context_keeps_last_level(plain):
    ctx = setup_output(initial_context(), simplified_logging_setup(logging.WARNING))
    ctx = setup_output(ctx, default_logging_setup(logging.ERROR))
    assert ctx.log_level == logging.ERROR
    assert ctx.logger.level == logging.ERROR


def test_initial_context_is_replaced(plain):
    ctx = setup_output(initial_context(), default_logging_setup(logging.INFO))
    assert ctx.initial is False
    assert initial_context().initial is True
    assert ctx.stdout is sys.stdout


def test_stderr_as_stdout_is_redirected(plain):
    ctx = setup_output(
        OutputContext(stdout=sys.stderr, stderr=io.StringIO()),
        default_logging_setup(logging.INFO),
    )
    assert ctx.stdout is sys.stdout


def test_simplified_logging_writes_json(plain):
    err = io.StringIO()
    ctx = setup_output(
        OutputContext(stdout=io.StringIO(), stderr=err),
        simplified_logging_setup(logging.DEBUG),
    )
    ctx.logger.info("Event sent", extra={"fields": {"ce-id": "abc"}})
    entry = json.loads(err.getvalue().strip().splitlines()[-1])
    assert entry["msg"] == "Event sent"
    assert entry["level"] == "info"
    assert entry["ce-id"] == "abc"


def test_default_logging_respects_level(plain):
    err = io.StringIO()
    ctx = setup_output(
        OutputContext(stdout=io.StringIO(), stderr=err),
        default_logging_setup(logging.WARNING),
    )
    ctx.logger.info("hidden")
    ctx.logger.warning("shown")
    assert err.getvalue() == "shown\n"


def test_fancy_output_gets_red_prefix(monkeypatch):
    monkeypatch.delenv("NO_COLOR", raising=False)
    monkeypatch.setenv("FORCE_COLOR", "yes")
    ctx = setup_output(
        OutputContext(stdout=io.StringIO(), stderr=io.StringIO()),
        default_logging_setup(logging.INFO),
    )
    assert ctx.err_prefix == "\x1b[31mError:\x1b[0m"


def test_plain_output_keeps_prefix(plain):
    ctx = setup_output(
        OutputContext(stdout=io.StringIO(), stderr=io.StringIO()),
        default_logging_setup(logging.INFO),
    )
    assert ctx.err_prefix == "Error:"
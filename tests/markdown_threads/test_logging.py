"""Tests for the stderr logger."""

import io

import pytest

from markdown_threads import logging as md_logging
from markdown_threads.logging import Logger, get_logger, init_logger


@pytest.fixture(autouse=True)
def reset_logger():
    yield
    md_logging._logger = None


def make_logger(verbose: bool = False) -> tuple[Logger, io.StringIO]:
    stream = io.StringIO()
    return Logger(verbose=verbose, use_colors=True, stream=stream), stream


def test_debug_only_when_verbose() -> None:
    quiet, quiet_out = make_logger()
    loud, loud_out = make_logger(verbose=True)

    quiet.debug("hidden")
    loud.debug("Wrote sidecar", path="a.json", threads=2)

    assert quiet_out.getvalue() == ""
    assert loud_out.getvalue() == "DEBUG: Wrote sidecar (path='a.json' threads=2)\n"


def test_prefixes() -> None:
    logger, out = make_logger()

    logger.info("Done")
    logger.warning("Careful", path="x")
    logger.error("Broken", suggestion="Try again")

    assert out.getvalue().splitlines() == [
        "Done",
        "Warning: Careful (path='x')",
        "Error: Broken",
        "  -> Try again",
    ]


def test_no_colors_on_non_tty() -> None:
    """Colors are dropped when the stream is not a terminal."""
    logger, out = make_logger()

    logger.error("Plain")

    assert logger.use_colors is False
    assert "\033[" not in out.getvalue()


def test_exception_traceback_only_when_verbose() -> None:
    try:
        raise OSError("disk full")
    except OSError as e:
        error = e

    quiet, quiet_out = make_logger()
    loud, loud_out = make_logger(verbose=True)
    quiet.exception("Failed to write sidecar", error)
    loud.exception("Failed to write sidecar", error)

    assert quiet_out.getvalue() == "Error: Failed to write sidecar: disk full\n"
    assert "Traceback" in loud_out.getvalue()


def test_default_logger_writes_to_current_stderr(capsys) -> None:
    logger = get_logger()

    logger.warning("to stderr")

    assert logger is get_logger()
    assert logger.verbose is False
    assert capsys.readouterr().err == "Warning: to stderr\n"


def test_init_logger_replaces_default() -> None:
    first = get_logger()
    configured = init_logger(verbose=True, use_colors=False)

    assert configured is not first
    assert get_logger() is configured
    assert configured.verbose is True

"""Turns failures into user-facing messages and process exit codes."""

import logging

from exaflow.core.errors import FileSystemFailure, printable

logger = logging.getLogger(__name__)

EXIT_FAILURE = 1


def describe_failure(error: BaseException) -> str:
    if isinstance(error, FileSystemFailure):
        return f"{error.kind.value}: {printable(error.message)}"
    return printable(str(error)) or type(error).__name__


def report_failure(error: BaseException, log: logging.Logger | None = None) -> int:
    """Log ``error`` and return the exit code the CLI should use."""
    (log or logger).error("Error: %s", describe_failure(error))
    return EXIT_FAILURE

"""Typed failures raised by the sandboxed file layer."""

import os
from enum import Enum


class ErrorKind(str, Enum):
    INVALID_PATH = "INVALID_PATH"
    PATH_TRAVERSAL = "PATH_TRAVERSAL"
    PATH_VIOLATION = "PATH_VIOLATION"
    PATH_VERIFICATION_FAILED = "PATH_VERIFICATION_FAILED"
    IS_DIRECTORY = "IS_DIRECTORY"
    FILE_TOO_LARGE = "FILE_TOO_LARGE"
    CONTENT_TOO_LARGE = "CONTENT_TOO_LARGE"
    DIRECTORY_NOT_FOUND = "DIRECTORY_NOT_FOUND"
    READ_ERROR = "READ_ERROR"
    WRITE_ERROR = "WRITE_ERROR"
    STAT_ERROR = "STAT_ERROR"
    LIST_ERROR = "LIST_ERROR"
    JSON_PARSE_ERROR = "JSON_PARSE_ERROR"
    JSON_SERIALIZE_ERROR = "JSON_SERIALIZE_ERROR"
    SCHEMA_VALIDATION_ERROR = "SCHEMA_VALIDATION_ERROR"
    PROTO_POLLUTION_DETECTED = "PROTO_POLLUTION_DETECTED"
    # Input helpers
    INVALID_INPUT_FORMAT = "INVALID_INPUT_FORMAT"
    STDIN_ERROR = "STDIN_ERROR"
    STDIN_JSON_ERROR = "STDIN_JSON_ERROR"

    @property
    def retryable(self) -> bool:
        """Whether the failure may be transient. Path rejections never are."""
        return self in _TRANSIENT_KINDS


_TRANSIENT_KINDS = frozenset({
    ErrorKind.READ_ERROR,
    ErrorKind.WRITE_ERROR,
    ErrorKind.STAT_ERROR,
    ErrorKind.LIST_ERROR,
})


def printable(value: object) -> str:
    """Render a path for a message with control characters escaped."""
    if isinstance(value, os.PathLike):
        value = os.fspath(value)
    if isinstance(value, bytes):
        value = value.decode("utf-8", errors="backslashreplace")
    text = str(value)
    return "".join(
        ch if ch.isprintable() else ch.encode("unicode_escape").decode("ascii")
        for ch in text
    )


class FileSystemFailure(Exception):
    """A sandbox failure. Callers match on ``kind``, never on the message."""

    def __init__(self, kind: ErrorKind, message: str, path: str | None = None):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.path = path

    def __repr__(self) -> str:
        return f"FileSystemFailure({self.kind.value}, {self.message!r})"

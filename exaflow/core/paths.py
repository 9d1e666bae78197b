"""Path validation - turns untrusted path strings into canonical paths inside
a fixed set of allowed roots.

Checks run in a fixed order and the first failure wins:

1. control characters (raw, then percent-decoded once)
2. leftover percent-triplets after one decode (multiple encoding)
3. ``..`` segments, ``~`` segments, encoded dot pairs
4. drive-letter and UNC prefixes, on every host
5. lexical containment of the absolute path
6. containment of the symlink-resolved path

The validator never creates, modifies, or deletes anything.
"""

import os
import re
from pathlib import Path
from urllib.parse import unquote

from exaflow.core.errors import ErrorKind, FileSystemFailure, printable

_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")
# Still present after one decode means the input was encoded at least twice.
_RESIDUAL_ESCAPE = re.compile(r"%(?:2e|2f|5c|00|25|7e)", re.IGNORECASE)
_ENCODED_DOT_PAIR = re.compile(r"%2e%2e", re.IGNORECASE)
_SEGMENT_SPLIT = re.compile(r"[\\/]")
_DRIVE_PREFIX = re.compile(r"^[A-Za-z]:")


def _with_sep(path: str) -> str:
    return path if path.endswith(os.sep) else path + os.sep


def _has_traversal_segment(path: str) -> bool:
    for segment in _SEGMENT_SPLIT.split(path):
        if segment == ".." or segment.startswith("~"):
            return True
    return False


def _is_foreign_absolute(path: str) -> bool:
    return bool(_DRIVE_PREFIX.match(path)) or path.startswith("\\\\")


class PathValidator:
    def __init__(self, allowed_roots: list[str | os.PathLike[str]]):
        if not allowed_roots:
            raise ValueError("At least one allowed root is required")
        roots: list[str] = []
        spellings: list[str] = []
        for root in allowed_roots:
            absolute = os.path.abspath(os.fspath(root))
            canonical = os.path.realpath(absolute)
            if canonical not in roots:
                roots.append(canonical)
            for form in (absolute, canonical):
                if form not in spellings:
                    spellings.append(form)
        self._roots = tuple(roots)
        # Lexical check also accepts the spelling a root was configured with
        # (e.g. a symlinked alias); the real-path check uses canonical roots only.
        self._spellings = tuple(spellings)

    @property
    def roots(self) -> tuple[str, ...]:
        return self._roots

    @staticmethod
    def _under(path: str, roots: tuple[str, ...]) -> bool:
        candidate = _with_sep(path)
        return any(candidate.startswith(_with_sep(root)) for root in roots)

    def validate(self, candidate: str | os.PathLike[str]) -> Path:
        """Return the canonical path for ``candidate`` or raise FileSystemFailure."""
        raw = os.fspath(candidate)
        if isinstance(raw, bytes):
            raw = os.fsdecode(raw)
        shown = printable(raw)

        if _CONTROL_CHARS.search(raw):
            raise FileSystemFailure(ErrorKind.INVALID_PATH, f"Invalid characters in path {shown}", raw)

        decoded = unquote(raw)
        if _CONTROL_CHARS.search(decoded):
            raise FileSystemFailure(ErrorKind.INVALID_PATH, f"Invalid encoded characters in path {shown}", raw)
        if decoded != raw and _RESIDUAL_ESCAPE.search(decoded):
            raise FileSystemFailure(ErrorKind.PATH_TRAVERSAL, f"Multiply encoded path rejected: {shown}", raw)

        if _ENCODED_DOT_PAIR.search(raw) or any(_has_traversal_segment(p) for p in (raw, decoded)):
            raise FileSystemFailure(ErrorKind.PATH_TRAVERSAL, f"Path traversal detected in {shown}", raw)

        if any(_is_foreign_absolute(p) for p in (raw, decoded)):
            raise FileSystemFailure(ErrorKind.PATH_TRAVERSAL, f"Foreign absolute path rejected: {shown}", raw)

        try:
            spelling = raw if decoded == raw or os.path.lexists(raw) else decoded
            resolved = os.path.abspath(spelling)
        except (UnicodeError, ValueError):
            raise FileSystemFailure(ErrorKind.INVALID_PATH, f"Unencodable path {shown}", raw)

        if not self._under(resolved, self._spellings):
            raise FileSystemFailure(
                ErrorKind.PATH_VIOLATION, f"Path {shown} is outside allowed workspace boundaries", raw
            )

        try:
            real = os.path.realpath(resolved)
        except (OSError, UnicodeError, ValueError):
            raise FileSystemFailure(ErrorKind.PATH_VERIFICATION_FAILED, f"Cannot verify path safety: {shown}", raw)

        if not self._under(real, self._roots):
            raise FileSystemFailure(
                ErrorKind.PATH_VERIFICATION_FAILED, f"Path {shown} resolves outside allowed boundaries", raw
            )
        return Path(real)

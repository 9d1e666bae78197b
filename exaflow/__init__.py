"""Sandboxed file access for the exaflow search client."""

from exaflow.core.errors import ErrorKind, FileSystemFailure
from exaflow.core.sandbox import FileInfo, Sandbox

__all__ = ["ErrorKind", "FileInfo", "FileSystemFailure", "Sandbox"]

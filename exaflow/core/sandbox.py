"""Sandboxed file access - every operation is confined to the allowed roots.

Each call revalidates its path; nothing resolved is cached between calls.
Between validation and the actual open a co-resident process could still swap
a path component for a symlink. Reads open with O_NOFOLLOW and gate on the
handle's fstat, which narrows but does not close that window.
"""

import os
import stat as stat_module
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any

from exaflow.core import safe_json
from exaflow.core.errors import ErrorKind, FileSystemFailure, printable
from exaflow.core.paths import PathValidator

if TYPE_CHECKING:
    from exaflow.core.config import Settings

DEFAULT_MAX_FILE_SIZE = 10 * 1024 * 1024

_NOFOLLOW = getattr(os, "O_NOFOLLOW", 0)
_BINARY = getattr(os, "O_BINARY", 0)
_NONBLOCK = getattr(os, "O_NONBLOCK", 0)

PathInput = str | os.PathLike[str]


@dataclass(frozen=True)
class FileInfo:
    path: Path
    size: int
    is_directory: bool
    last_modified: datetime


class Sandbox:
    """Bounded read/write/list/stat over a fixed set of allowed root directories."""

    def __init__(
        self,
        allowed_roots: list[PathInput] | None = None,
        max_file_size: int = DEFAULT_MAX_FILE_SIZE,
    ) -> None:
        if max_file_size <= 0:
            raise ValueError("max_file_size must be positive")
        self._validator = PathValidator(allowed_roots or [os.getcwd()])
        self._max_file_size = max_file_size

    @classmethod
    def from_settings(cls, settings: "Settings") -> "Sandbox":
        return cls(list(settings.allowed_roots), settings.max_file_size)

    @property
    def allowed_roots(self) -> tuple[str, ...]:
        return self._validator.roots

    @property
    def max_file_size(self) -> int:
        return self._max_file_size

    def validate(self, path: PathInput) -> Path:
        return self._validator.validate(path)

    # --- Read surface ---

    def read(self, path: PathInput) -> bytes:
        """Read a whole file. The size cap is enforced before any bytes are read."""
        target = self.validate(path)
        shown = printable(path)
        try:
            # Non-blocking so a FIFO cannot stall the open.
            fd = os.open(target, os.O_RDONLY | _NOFOLLOW | _NONBLOCK | _BINARY)
        except OSError as e:
            # Windows refuses to open directories at all.
            if isinstance(e, IsADirectoryError) or target.is_dir():
                raise FileSystemFailure(ErrorKind.IS_DIRECTORY, "Cannot read directory as file", str(path))
            raise FileSystemFailure(ErrorKind.READ_ERROR, f"Failed to read file {shown}: {e.strerror}", str(path))

        try:
            info = os.fstat(fd)
            if stat_module.S_ISDIR(info.st_mode):
                raise FileSystemFailure(ErrorKind.IS_DIRECTORY, "Cannot read directory as file", str(path))
            if info.st_size > self._max_file_size:
                raise FileSystemFailure(
                    ErrorKind.FILE_TOO_LARGE,
                    f"File size {info.st_size} exceeds maximum allowed size {self._max_file_size}",
                    str(path),
                )
            if not stat_module.S_ISREG(info.st_mode):
                raise FileSystemFailure(ErrorKind.READ_ERROR, f"Not a regular file: {shown}", str(path))
            data = bytearray()
            while len(data) <= self._max_file_size:
                chunk = os.read(fd, self._max_file_size + 1 - len(data))
                if not chunk:
                    break
                data += chunk
        except OSError as e:
            raise FileSystemFailure(ErrorKind.READ_ERROR, f"Failed to read file {shown}: {e.strerror}", str(path))
        finally:
            os.close(fd)

        # The file grew between fstat and read.
        if len(data) > self._max_file_size:
            raise FileSystemFailure(
                ErrorKind.FILE_TOO_LARGE,
                f"File exceeds maximum allowed size {self._max_file_size}",
                str(path),
            )
        return bytes(data)

    def read_text(self, path: PathInput, encoding: str = "utf-8") -> str:
        data = self.read(path)
        try:
            return data.decode(encoding)
        except UnicodeDecodeError:
            raise FileSystemFailure(
                ErrorKind.READ_ERROR, f"File {printable(path)} is not valid {encoding} text", str(path)
            )

    def stat(self, path: PathInput) -> FileInfo:
        target = self.validate(path)
        try:
            info = os.stat(target)
        except OSError as e:
            raise FileSystemFailure(
                ErrorKind.STAT_ERROR, f"Failed to get file info for {printable(path)}: {e.strerror}", str(path)
            )
        return FileInfo(
            path=target,
            size=info.st_size,
            is_directory=stat_module.S_ISDIR(info.st_mode),
            last_modified=datetime.fromtimestamp(info.st_mtime, tz=timezone.utc),
        )

    def list(self, path: PathInput) -> list[str]:
        """Names of the direct children of a directory, sorted."""
        target = self.validate(path)
        try:
            return sorted(os.listdir(target))
        except FileNotFoundError:
            raise FileSystemFailure(ErrorKind.DIRECTORY_NOT_FOUND, "Directory does not exist", str(path))
        except OSError as e:
            raise FileSystemFailure(
                ErrorKind.LIST_ERROR, f"Failed to list directory {printable(path)}: {e.strerror}", str(path)
            )

    def exists(self, path: PathInput) -> bool:
        """True only for an existing, reachable path. Never raises."""
        try:
            return self.validate(path).exists()
        except (FileSystemFailure, OSError, ValueError):
            return False

    def read_json(self, path: PathInput, schema: Any = None) -> Any:
        return safe_json.loads(self.read(path), path=str(path), schema=schema)

    # --- Write surface ---

    def write(
        self,
        path: PathInput,
        content: bytes | str,
        *,
        create_parents: bool = True,
        encoding: str = "utf-8",
    ) -> None:
        """Write ``content`` in full, replacing the file. Oversized content never touches disk."""
        target = self.validate(path)
        data = content.encode(encoding) if isinstance(content, str) else bytes(content)
        if len(data) > self._max_file_size:
            raise FileSystemFailure(
                ErrorKind.CONTENT_TOO_LARGE,
                f"Content size {len(data)} exceeds maximum allowed size {self._max_file_size}",
                str(path),
            )

        try:
            if create_parents:
                target.parent.mkdir(parents=True, exist_ok=True)
            # A FIFO without a reader fails with ENXIO instead of blocking.
            fd = os.open(target, os.O_WRONLY | os.O_CREAT | os.O_TRUNC | _NOFOLLOW | _NONBLOCK | _BINARY, 0o666)
            with os.fdopen(fd, "wb") as handle:
                handle.write(data)
        except OSError as e:
            raise FileSystemFailure(
                ErrorKind.WRITE_ERROR, f"Failed to write file {printable(path)}: {e.strerror}", str(path)
            )

    def write_json(
        self,
        path: PathInput,
        value: Any,
        pretty: bool = True,
        *,
        create_parents: bool = True,
    ) -> None:
        text = safe_json.dumps(value, pretty=pretty, path=str(path))
        self.write(path, text, create_parents=create_parents)

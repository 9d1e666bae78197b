"""Loaders for user-supplied inputs: query files, URL lists, schema files, stdin."""

import logging
import sys
from typing import Any, TextIO

from exaflow.core import safe_json
from exaflow.core.errors import ErrorKind, FileSystemFailure, printable
from exaflow.core.sandbox import PathInput, Sandbox

logger = logging.getLogger(__name__)

_LINE_PREVIEW = 100


def read_input_file(sandbox: Sandbox, path: PathInput) -> list[Any]:
    """Load batch tasks from a JSON array or an object with a ``tasks`` array."""
    try:
        data = sandbox.read_json(path)
    except FileSystemFailure as e:
        if e.kind is not ErrorKind.JSON_PARSE_ERROR:
            raise
        raise FileSystemFailure(ErrorKind.INVALID_INPUT_FORMAT, f"Input file is not valid JSON: {e.message}", e.path)
    if isinstance(data, list):
        tasks = data
    elif isinstance(data, dict) and isinstance(data.get("tasks"), list):
        tasks = data["tasks"]
    else:
        raise FileSystemFailure(
            ErrorKind.INVALID_INPUT_FORMAT,
            "Input file must contain an array or object with 'tasks' array",
            str(path),
        )
    logger.debug("Loaded %d task(s) from input file", len(tasks))
    return tasks


def read_url_list(sandbox: Sandbox, path: PathInput) -> list[str]:
    urls = [
        line.strip()
        for line in sandbox.read_text(path).split("\n")
        if line.strip().startswith("http")
    ]
    if not urls:
        raise FileSystemFailure(ErrorKind.INVALID_INPUT_FORMAT, "No URLs found", str(path))
    logger.debug("Loaded %d URL(s)", len(urls))
    return urls


def read_instructions(sandbox: Sandbox, path: PathInput) -> str:
    return sandbox.read_text(path)


def read_schema_file(sandbox: Sandbox, path: PathInput) -> dict[str, Any]:
    """Load a JSON output schema. Must be an object."""
    schema = sandbox.read_json(path)
    if not isinstance(schema, dict):
        raise FileSystemFailure(ErrorKind.INVALID_INPUT_FORMAT, "Schema must be a valid JSON object", str(path))
    return schema


def read_stdin(stream: TextIO | None = None) -> str:
    stream = stream if stream is not None else sys.stdin
    try:
        return stream.read()
    except (OSError, UnicodeDecodeError) as e:
        raise FileSystemFailure(ErrorKind.STDIN_ERROR, f"Failed to read stdin: {e}")


def query_lines(text: str) -> list[str]:
    return [line.strip() for line in text.split("\n") if line.strip()]


def parse_json_lines(text: str) -> list[Any]:
    """Parse JSONL, one value per non-blank line, with the same pollution checks as files."""
    results = []
    for line in query_lines(text):
        try:
            results.append(safe_json.loads(line))
        except FileSystemFailure as e:
            if e.kind is ErrorKind.PROTO_POLLUTION_DETECTED:
                raise
            preview = line[:_LINE_PREVIEW] + ("..." if len(line) > _LINE_PREVIEW else "")
            raise FileSystemFailure(ErrorKind.STDIN_JSON_ERROR, f"Invalid JSON line in stdin: {printable(preview)}")
    return results


def read_stdin_json(stream: TextIO | None = None) -> list[Any]:
    return parse_json_lines(read_stdin(stream))

"""JSON parsing that refuses prototype-pollution keys, plus optional schema checks."""

import json
import re
from typing import Any

from pydantic import BaseModel, TypeAdapter, ValidationError

from exaflow.core.errors import ErrorKind, FileSystemFailure

DANGEROUS_KEYS = frozenset({"__proto__", "constructor", "prototype"})

# Quoted tokens anywhere in the text; may also match string values.
_DANGEROUS_TOKEN = re.compile(r'"(?:__proto__|constructor|prototype)"')


def _reject_dangerous_keys(pairs: list[tuple[str, Any]]) -> dict[str, Any]:
    for key, _ in pairs:
        if key in DANGEROUS_KEYS:
            raise FileSystemFailure(
                ErrorKind.PROTO_POLLUTION_DETECTED,
                f"JSON object key {key!r} is not allowed",
            )
    return dict(pairs)


def _reject_constant(name: str) -> Any:
    # NaN and Infinity are not JSON.
    raise FileSystemFailure(ErrorKind.JSON_PARSE_ERROR, f"Failed to parse JSON: {name} is not a valid JSON value")


def check_pollution(text: str, path: str | None = None) -> None:
    if text.strip().startswith("__proto__") or _DANGEROUS_TOKEN.search(text):
        raise FileSystemFailure(
            ErrorKind.PROTO_POLLUTION_DETECTED,
            "JSON contains potentially dangerous prototype pollution properties",
            path,
        )


def _adapter(schema: Any) -> TypeAdapter:
    if isinstance(schema, TypeAdapter):
        return schema
    return TypeAdapter(schema)


def loads(text: str | bytes, path: str | None = None, schema: Any = None) -> Any:
    """Parse ``text`` after the pollution checks; validate against ``schema`` if given.

    ``schema`` is anything pydantic's TypeAdapter accepts (a BaseModel
    subclass, ``list[int]``, a TypedDict, ...) or a TypeAdapter itself.
    """
    if isinstance(text, bytes):
        try:
            text = text.decode("utf-8-sig")
        except UnicodeDecodeError as e:
            raise FileSystemFailure(ErrorKind.JSON_PARSE_ERROR, f"JSON is not valid UTF-8: {e.reason}", path)

    check_pollution(text, path)

    try:
        parsed = json.loads(text, object_pairs_hook=_reject_dangerous_keys, parse_constant=_reject_constant)
    except FileSystemFailure as e:
        raise FileSystemFailure(e.kind, e.message, path)
    except (json.JSONDecodeError, RecursionError) as e:
        raise FileSystemFailure(ErrorKind.JSON_PARSE_ERROR, f"Failed to parse JSON: {e}", path)

    if schema is None:
        return parsed

    try:
        return _adapter(schema).validate_python(parsed)
    except ValidationError as e:
        # Locations and messages only; input values stay out of the error.
        details = "; ".join(
            f"{'.'.join(str(part) for part in err['loc']) or '<root>'}: {err['msg']}"
            for err in e.errors(include_url=False)
        )
        raise FileSystemFailure(
            ErrorKind.SCHEMA_VALIDATION_ERROR,
            f"JSON schema validation failed: {details}",
            path,
        )


def dumps(value: Any, pretty: bool = True, path: str | None = None) -> str:
    if isinstance(value, BaseModel):
        value = value.model_dump(mode="json")
    try:
        return json.dumps(value, indent=2 if pretty else None, ensure_ascii=False, allow_nan=False)
    except (TypeError, ValueError, RecursionError) as e:
        raise FileSystemFailure(ErrorKind.JSON_SERIALIZE_ERROR, f"Failed to serialize JSON: {e}", path)

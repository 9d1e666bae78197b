"""Tests for hardened JSON reading and writing."""

import json

import pytest
from pydantic import BaseModel, TypeAdapter

from exaflow.core import safe_json
from exaflow.core.errors import ErrorKind, FileSystemFailure


class Citation(BaseModel):
    url: str
    title: str | None = None


def _kind(call, *args, **kwargs):
    with pytest.raises(FileSystemFailure) as exc:
        call(*args, **kwargs)
    return exc.value.kind


def test_read_json(sandbox, root):
    (root / "data.json").write_text('{"key": "value", "items": [1, 2]}')
    assert sandbox.read_json(root / "data.json") == {"key": "value", "items": [1, 2]}


def test_read_json_with_bom(sandbox, root):
    (root / "bom.json").write_bytes(b'\xef\xbb\xbf{"a": 1}')
    assert sandbox.read_json(root / "bom.json") == {"a": 1}


@pytest.mark.parametrize("document", [
    '{"__proto__": {"admin": true}}',
    '{"a": {"b": {"c": {"__proto__": {"x": 1}}}}}',
    '[{"constructor": {"prototype": {}}}]',
    '{"nested": [{"prototype": 1}]}',
    '  __proto__',
])
def test_pollution_keys_rejected(sandbox, root, document):
    (root / "evil.json").write_text(document)
    assert _kind(sandbox.read_json, root / "evil.json") is ErrorKind.PROTO_POLLUTION_DETECTED


def test_escaped_pollution_key_caught_while_parsing(sandbox, root):
    (root / "escaped.json").write_text(r'{"outer": {"\u005f_proto__": {"x": 1}}}')
    with pytest.raises(FileSystemFailure) as exc:
        sandbox.read_json(root / "escaped.json")
    assert exc.value.kind is ErrorKind.PROTO_POLLUTION_DETECTED
    assert exc.value.path == str(root / "escaped.json")


def test_quoted_value_is_a_known_false_positive():
    with pytest.raises(FileSystemFailure) as exc:
        safe_json.loads('{"role": "constructor"}')
    assert exc.value.kind is ErrorKind.PROTO_POLLUTION_DETECTED


def test_unquoted_mentions_are_fine():
    assert safe_json.loads('{"note": "the constructor pattern"}') == {"note": "the constructor pattern"}


def test_written_pollution_is_caught_on_read(sandbox, root):
    sandbox.write(root / "out.json", '{"__proto__":{"x":1}}')
    assert _kind(sandbox.read_json, root / "out.json") is ErrorKind.PROTO_POLLUTION_DETECTED


def test_malformed_json(sandbox, root):
    (root / "bad.json").write_text('{"unterminated": ')
    assert _kind(sandbox.read_json, root / "bad.json") is ErrorKind.JSON_PARSE_ERROR


@pytest.mark.parametrize("document", ["NaN", "[1, Infinity]", '{"score": -Infinity}'])
def test_non_finite_numbers_rejected(sandbox, root, document):
    (root / "nan.json").write_text(document)
    with pytest.raises(FileSystemFailure) as exc:
        sandbox.read_json(root / "nan.json")
    assert exc.value.kind is ErrorKind.JSON_PARSE_ERROR
    assert exc.value.path == str(root / "nan.json")


def test_invalid_utf8(sandbox, root):
    (root / "bad.json").write_bytes(b'{"a": "\xff"}')
    assert _kind(sandbox.read_json, root / "bad.json") is ErrorKind.JSON_PARSE_ERROR


def test_read_json_respects_size_limit(sandbox, root):
    (root / "big.json").write_text(json.dumps(["x" * 50] * 40))
    assert _kind(sandbox.read_json, root / "big.json") is ErrorKind.FILE_TOO_LARGE


# --- Schema ---

def test_schema_model(sandbox, root):
    (root / "c.json").write_text('{"url": "https://exa.ai", "title": "Exa"}')
    citation = sandbox.read_json(root / "c.json", schema=Citation)
    assert citation == Citation(url="https://exa.ai", title="Exa")


def test_schema_generic_and_adapter():
    assert safe_json.loads("[1, 2, 3]", schema=list[int]) == [1, 2, 3]
    assert safe_json.loads("[1, 2]", schema=TypeAdapter(list[int])) == [1, 2]


def test_schema_mismatch(sandbox, root):
    (root / "c.json").write_text('{"title": "no url"}')
    with pytest.raises(FileSystemFailure) as exc:
        sandbox.read_json(root / "c.json", schema=Citation)
    assert exc.value.kind is ErrorKind.SCHEMA_VALIDATION_ERROR
    assert "url" in exc.value.message


def test_pollution_checked_before_schema(sandbox, root):
    (root / "c.json").write_text('{"url": "x", "constructor": 1}')
    assert _kind(sandbox.read_json, root / "c.json", schema=Citation) is ErrorKind.PROTO_POLLUTION_DETECTED


# --- Writing ---

def test_write_json_pretty_and_compact(sandbox, root):
    sandbox.write_json(root / "pretty.json", {"a": [1, 2]})
    sandbox.write_json(root / "compact.json", {"a": [1, 2]}, pretty=False)
    assert (root / "pretty.json").read_text() == '{\n  "a": [\n    1,\n    2\n  ]\n}'
    assert (root / "compact.json").read_text() == '{"a": [1, 2]}'


def test_write_json_creates_parents(sandbox, root):
    sandbox.write_json(root / "sessions" / "s1.json", {"id": "s1"})
    assert sandbox.read_json(root / "sessions" / "s1.json") == {"id": "s1"}


def test_write_json_model(sandbox, root):
    sandbox.write_json(root / "c.json", Citation(url="https://exa.ai"))
    assert sandbox.read_json(root / "c.json") == {"url": "https://exa.ai", "title": None}


def test_circular_reference(sandbox, root):
    data: dict = {}
    data["self"] = data
    assert _kind(sandbox.write_json, root / "loop.json", data) is ErrorKind.JSON_SERIALIZE_ERROR
    assert not (root / "loop.json").exists()


def test_unserializable_value(sandbox, root):
    assert _kind(sandbox.write_json, root / "obj.json", {"x": object()}) is ErrorKind.JSON_SERIALIZE_ERROR


@pytest.mark.parametrize("value", [float("nan"), float("inf"), -float("inf")])
def test_non_finite_numbers_not_written(sandbox, root, value):
    assert _kind(sandbox.write_json, root / "nan.json", {"score": value}) is ErrorKind.JSON_SERIALIZE_ERROR
    assert not (root / "nan.json").exists()


def test_write_json_oversized(sandbox, root):
    assert _kind(sandbox.write_json, root / "big.json", ["x" * 2000]) is ErrorKind.CONTENT_TOO_LARGE


def test_write_json_outside(sandbox, outside):
    assert _kind(sandbox.write_json, outside / "x.json", {}) is ErrorKind.PATH_VIOLATION

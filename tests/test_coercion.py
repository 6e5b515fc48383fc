"""Tests for schema-driven coercion."""

import pytest
from stepflow.workflow.coercion import coerce, default_value_for_schema, to_json, to_number, to_object, to_string
from stepflow.workflow.models import Schema, create_array_schema, create_object_schema


def test_coerce_string():
    """Test conversions to string."""
    schema = Schema("string")
    assert coerce("hello", schema) == "hello"
    assert coerce(None, schema) == "null"
    assert coerce(True, schema) == "true"
    assert coerce(3.0, schema) == "3"
    assert coerce(2.5, schema) == "2.5"
    assert coerce(["a", "b"], schema) == "a\nb"
    assert coerce({"k": 1, "n": [1, 2]}, schema) == '{"k":1,"n":[1,2]}'


def test_coerce_number():
    """Test conversions to number; non-numeric values become 0."""
    schema = Schema("number")
    assert coerce("12", schema) == 12
    assert coerce(" 1.5 ", schema) == 1.5
    assert coerce("abc", schema) == 0
    assert coerce("", schema) == 0
    assert coerce("1_000", schema) == 0
    assert coerce(True, schema) == 0
    assert coerce(None, schema) == 0
    assert coerce([7, 8], schema) == 7
    assert coerce(float("nan"), schema) == 0


def test_coerce_boolean():
    """Test conversions to boolean."""
    schema = Schema("boolean")
    assert coerce("TRUE", schema) is True
    assert coerce("yes", schema) is False
    assert coerce(0, schema) is False
    assert coerce(2, schema) is True
    assert coerce([], schema) is False
    assert coerce([0], schema) is True
    assert coerce(None, schema) is False


def test_coerce_object():
    """Test conversions to object."""
    schema = Schema("object")
    assert coerce({"a": 1}, schema) == {"a": 1}
    assert coerce('{"a": 1}', schema) == {"a": 1}
    assert coerce("not json", schema) == {}
    assert coerce("[1, 2]", schema) == {}
    assert coerce(5, schema) == {}


def test_coerce_file_passes_through():
    """Test file values are left alone."""
    record = {"file_id": "f1", "name": "a.txt"}
    assert coerce(record, Schema("file")) is record


def test_coerce_array_wraps_and_converts_elements():
    """Test array targets coerce every element."""
    schema = create_array_schema("number")
    assert coerce(["1", "2", "x"], schema) == [1, 2, 0]
    assert coerce("5", schema) == [5]
    assert coerce(["a", 1], create_array_schema("string")) == ["a", "1"]


@pytest.mark.parametrize(
    "schema,value",
    [
        (Schema("string"), {"k": [1, 2]}),
        (Schema("number"), "3.25"),
        (Schema("boolean"), "True"),
        (Schema("object"), '{"a": {"b": 1}}'),
        (create_array_schema("number"), ["1", None, "z"]),
        (create_array_schema("string"), 42),
    ],
)
def test_coerce_is_idempotent(schema, value):
    """Test coercing an already coerced value is a no-op."""
    once = coerce(value, schema)
    assert coerce(once, schema) == once


def test_helpers():
    """Test the standalone helpers."""
    assert to_string([1, [2, 3]]) == "1\n2\n3"
    assert to_number("-4") == -4
    assert to_object(None) == {}
    assert to_json({"city": "Zürich", "ids": [1, 2]}) == '{"city":"Zürich","ids":[1,2]}'


def test_default_value_for_schema():
    """Test default values follow the declared shape."""
    assert default_value_for_schema(Schema("string")) == ""
    assert default_value_for_schema(Schema("number")) == 0
    assert default_value_for_schema(Schema("boolean")) is False
    assert default_value_for_schema(create_array_schema("object")) == []
    nested = create_object_schema({"name": Schema("string"), "inner": create_object_schema({"n": Schema("number")})})
    assert default_value_for_schema(nested) == {"name": "", "inner": {"n": 0}}
    assert default_value_for_schema(Schema("file"))["file_id"] == ""

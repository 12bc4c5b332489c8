"""Tests for JsonView."""

import pytest

from bili_relay.ingestion.json_view import JsonView


@pytest.fixture
def view():
    return JsonView({
        "code": 0,
        "data": {
            "name": "Alice",
            "mid": "12345",
            "score": 3.7,
            "flag": 1,
            "nothing": None,
            "items": [{"src": "a.jpg"}, {"src": "b.jpg"}],
        },
    })


class TestJsonView:
    """Tests for path lookups and coercion."""

    def test_parse_bytes(self):
        assert JsonView.parse(b'{"a": {"b": 1}}').integer("a.b") == 1

    def test_parse_invalid_raises(self):
        with pytest.raises(ValueError):
            JsonView.parse(b"<html>")

    def test_nested_string(self, view):
        assert view.string("data.name") == "Alice"

    def test_array_index(self, view):
        assert view.string("data.items.1.src") == "b.jpg"
        assert view.string("data.items.5.src") == ""

    def test_missing_paths_default(self, view):
        assert view.string("data.missing.deeper") == ""
        assert view.integer("data.missing", default=-1) == -1
        assert view.boolean("data.missing") is False
        assert view.array("data.missing") == []

    def test_integer_coercion(self, view):
        assert view.integer("data.mid") == 12345
        assert view.integer("data.score") == 3
        assert view.integer("data.name") == 0

    def test_boolean_coercion(self, view):
        assert view.boolean("data.flag") is True
        assert JsonView({"x": "true"}).boolean("x") is True
        assert JsonView({"x": 0}).boolean("x") is False

    def test_exists_counts_null_as_present(self, view):
        assert view.exists("data.nothing")
        assert not view.exists("data.absent")
        assert not view.get("data.absent").exists()

    def test_null_string_is_default(self, view):
        assert view.string("data.nothing", default="x") == "x"

    def test_array_of_views(self, view):
        items = view.array("data.items")

        assert [item.string("src") for item in items] == ["a.jpg", "b.jpg"]

    def test_non_array_is_empty(self, view):
        assert view.array("data.name") == []

    def test_value(self, view):
        assert view.get("data.items.0").value == {"src": "a.jpg"}
        assert view.get("nope").value is None

    def test_indexing_a_scalar_is_missing(self, view):
        assert not view.exists("data.name.first")

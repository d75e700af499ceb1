"""Unit tests for path extraction."""

import logging

import pytest

from loadflow.core.path_extractor import (
    MISSING,
    extract,
    extract_mapping,
    is_missing,
    split_path,
)


class TestSplitPath:
    """Tests for split_path."""

    def test_dots_only(self):
        assert split_path("data.user.id") == ["data", "user", "id"]

    def test_bracket_index_becomes_segment(self):
        """Test that items[2] is shorthand for items.2."""
        assert split_path("data.items[2].name") == ["data", "items", "2", "name"]

    def test_nested_brackets(self):
        assert split_path("matrix[1][0]") == ["matrix", "1", "0"]


class TestExtract:
    """Tests for extract."""

    @pytest.fixture
    def body(self):
        """Sample response body."""
        return {
            "data": {
                "items": ["a", "b", "c"],
                "token": "abc.def.ghi",
                "contacts": [{"type": "email", "value": "x@example.com"}],
                "count": 0,
                "empty": None,
            }
        }

    def test_nested_key(self, body):
        assert extract(body, "data.token") == "abc.def.ghi"

    def test_bracket_index(self, body):
        assert extract(body, "data.items[1]") == "b"

    def test_dot_index(self, body):
        """Test that numeric dot segments index into lists."""
        assert extract(body, "data.items.2") == "c"

    def test_index_then_key(self, body):
        assert extract(body, "data.contacts[0].value") == "x@example.com"

    def test_whole_subtree(self, body):
        assert extract(body, "data.items") == ["a", "b", "c"]

    def test_falsy_values_are_found(self, body):
        """Test that 0 and null are real values, not absence."""
        assert extract(body, "data.count") == 0
        assert extract(body, "data.empty") is None

    def test_missing_key(self, body):
        assert extract(body, "data.missing") is MISSING

    def test_missing_on_empty_object(self):
        assert extract({}, "a.b.c") is MISSING

    def test_walk_through_null(self, body):
        assert extract(body, "data.empty.id") is MISSING

    def test_walk_through_scalar(self, body):
        assert extract(body, "data.token.length") is MISSING

    def test_index_out_of_range(self, body):
        assert extract(body, "data.items[3]") is MISSING

    def test_non_numeric_index(self, body):
        assert extract(body, "data.items.first") is MISSING

    def test_negative_index_not_supported(self, body):
        assert extract(body, "data.items[-1]") is MISSING

    def test_top_level_list(self):
        assert extract([{"id": 7}], "0.id") == 7

    def test_none_root(self):
        assert extract(None, "a") is MISSING

    def test_malformed_path(self, body):
        """Test that malformed paths resolve to MISSING instead of raising."""
        assert extract(body, "data..token") is MISSING
        assert extract(body, "data.items[]") is MISSING


class TestMissing:
    """Tests for the MISSING sentinel."""

    def test_sentinel_is_falsy(self):
        assert not MISSING

    def test_is_missing(self):
        assert is_missing(MISSING)
        assert not is_missing(None)
        assert not is_missing(0)

    def test_repr(self):
        assert repr(MISSING) == "MISSING"


class TestExtractMapping:
    """Tests for extract_mapping."""

    def test_collects_resolved_keys(self):
        body = {"data": {"id": 42, "ref": "R-1"}}

        found = extract_mapping(body, {"taskId": "data.id", "ref": "data.ref"}, "Create Task")

        assert found == {"taskId": 42, "ref": "R-1"}

    def test_skips_and_warns_on_miss(self, caplog):
        body = {"data": {"id": 42}}

        with caplog.at_level(logging.WARNING, logger="loadflow.core.path_extractor"):
            found = extract_mapping(body, {"taskId": "data.id", "ref": "data.ref"}, "Create Task")

        assert found == {"taskId": 42}
        assert "Create Task" in caplog.text
        assert "data.ref" in caplog.text

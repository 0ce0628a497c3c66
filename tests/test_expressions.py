"""Tests for hnmd.expressions."""

import pytest

from hnmd.errors import EvaluationError, ExpressionError
from hnmd.expressions import Field, Index, Path, Query, classify, normalize, parse_path


# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------

class TestPathClassification:

    def test_field_index_chain(self):
        e = classify("queries.feed[0].content")
        assert e == Path("queries", (Field("feed"), Index(0), Field("content")))

    def test_bare_identifier(self):
        assert classify("user") == Path("user")

    def test_leading_dot_is_stripped(self):
        assert classify(".user.name") == Path("user", (Field("name"),))

    def test_surrounding_whitespace_is_trimmed(self):
        assert classify("  state.count ") == Path("state", (Field("count"),))

    @pytest.mark.parametrize("text", [
        "user",
        "a_b.c1",
        "_x[0][1].y",
        "items[10]",
        "a[007]",
        "queries.feed[0].tags[2]",
    ])
    def test_renders_back_exactly(self, text):
        e = classify(text)
        assert isinstance(e, Path)
        assert str(e) == text

    def test_renders_dot_stripped_input(self):
        assert str(classify(".a.b[2]")) == "a.b[2]"

    def test_leading_zero_index_value(self):
        e = classify("a[007]")
        assert e.segments == (Index(7),)


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

class TestQueryFallback:

    @pytest.mark.parametrize("text", [
        'user.name // "Anon"',
        ".",
        "user..name",
        "items[]",
        "map(.content)",
        "queries.feed | length",
        "1",
        "a[-1]",
        "a[b]",
        "état.x",
        "state.count > 1",
        "true",
        "null",
    ])
    def test_non_paths_are_queries(self, text):
        e = classify(text)
        assert isinstance(e, Query)
        assert e.text == text

    def test_parse_path_returns_none_for_query(self):
        assert parse_path("a | b") is None

    @pytest.mark.parametrize("text", ["", "   ", "\n"])
    def test_empty_text_raises(self, text):
        with pytest.raises(ExpressionError):
            classify(text)


class TestNormalize:

    def test_prefixes_names(self):
        assert normalize("user.name") == ".user.name"

    def test_keeps_dot_prefix(self):
        assert normalize(" .user ") == ".user"

    def test_leaves_constructors_alone(self):
        assert normalize("{a: 1}") == "{a: 1}"
        assert normalize("[1, 2]") == "[1, 2]"

    @pytest.mark.parametrize("text", [
        'if .state.on then "y" else "n" end',
        "reduce .[] as $x (0; . + $x)",
        "true",
        "null",
    ])
    def test_leaves_keywords_alone(self, text):
        assert normalize(text) == text

    def test_keyword_prefix_is_still_a_name(self):
        assert normalize("iffy.x") == ".iffy.x"


# ---------------------------------------------------------------------------
# Direct resolution
# ---------------------------------------------------------------------------

class TestPathResolve:

    DATA = {"queries": {"feed": [{"content": "hi"}]}, "n": 1, "none": None}

    def test_resolves_nested_value(self):
        assert classify("queries.feed[0].content").resolve(self.DATA) == "hi"

    def test_missing_field_is_null(self):
        assert classify("queries.other").resolve(self.DATA) is None

    def test_index_out_of_range_is_null(self):
        assert classify("queries.feed[5].content").resolve(self.DATA) is None

    def test_null_propagates(self):
        assert classify("none.a[0].b").resolve(self.DATA) is None

    def test_field_of_number_raises(self):
        with pytest.raises(EvaluationError):
            classify("n.value").resolve(self.DATA)

    def test_index_of_object_raises(self):
        with pytest.raises(EvaluationError):
            classify("queries[0]").resolve(self.DATA)

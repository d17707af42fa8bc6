"""Tests for the placeholder tokenizer and substitution."""

from __future__ import annotations

import time

import pytest

from modstamp.core.errors import MalformedPlaceholder, UnresolvedPlaceholder
from modstamp.core.substitution import (
    Literal,
    Placeholder,
    find_placeholders,
    substitute,
    tokenize,
)


class TestTokenize:
    def test_literal_only(self) -> None:
        assert list(tokenize("plain { text }")) == [Literal("plain { text }")]

    def test_empty_text(self) -> None:
        assert list(tokenize("")) == []

    def test_placeholder_with_position(self) -> None:
        tokens = list(tokenize("a\n  {{mod_id}}!"))
        assert tokens == [
            Literal("a\n  "),
            Placeholder(name="mod_id", token="{{mod_id}}", line=2, column=3),
            Literal("!"),
        ]

    def test_positions_across_lines(self) -> None:
        text = "{{a}} {{b}}\n\nxx{{c}}\n{{d}}{{e}}"
        positions = [(p.name, p.line, p.column) for p in find_placeholders(text)]
        assert positions == [
            ("a", 1, 1),
            ("b", 1, 7),
            ("c", 3, 3),
            ("d", 4, 1),
            ("e", 4, 6),
        ]

    def test_inner_whitespace_is_ignored(self) -> None:
        (placeholder,) = find_placeholders("{{  mod_id }}")
        assert placeholder.name == "mod_id"
        assert placeholder.token == "{{  mod_id }}"

    def test_adjacent_placeholders(self) -> None:
        names = [p.name for p in find_placeholders("{{a}}{{b}}{{a}}")]
        assert names == ["a", "b", "a"]

    def test_stray_close(self) -> None:
        with pytest.raises(MalformedPlaceholder) as exc_info:
            list(tokenize("a }} b"))
        assert exc_info.value.line == 1
        assert exc_info.value.column == 3
        assert exc_info.value.token == "}}"

    def test_unclosed_open(self) -> None:
        with pytest.raises(MalformedPlaceholder, match="unclosed"):
            list(tokenize("x {{abc"))

    def test_nested_open(self) -> None:
        with pytest.raises(MalformedPlaceholder, match="nested"):
            list(tokenize("{{a {{b}}"))

    @pytest.mark.parametrize("text", ["{{}}", "{{1abc}}", "{{a b}}", "{{mod-id}}"])
    def test_invalid_identifier(self, text: str) -> None:
        with pytest.raises(MalformedPlaceholder, match="invalid placeholder identifier"):
            list(tokenize(text))


class TestSubstitute:
    def test_replaces_placeholders(self) -> None:
        result = substitute('MOD_ID = "{{mod_id}}"', {"mod_id": "examplemod"})
        assert result.text == 'MOD_ID = "examplemod"'
        assert result.referenced == frozenset({"mod_id"})

    def test_literal_text_unchanged(self) -> None:
        text = "public class Foo {\n    int x = 1;\n}\n"
        result = substitute(text, {})
        assert result.text == text
        assert result.referenced == frozenset()

    def test_unused_context_entries_are_ignored(self) -> None:
        result = substitute("{{a}}", {"a": "1", "b": "2"})
        assert result.text == "1"
        assert result.referenced == frozenset({"a"})

    def test_values_are_not_rescanned(self) -> None:
        result = substitute("{{a}}", {"a": "{{b}}"})
        assert result.text == "{{b}}"

    def test_deterministic(self) -> None:
        text = "{{x}}-{{y}}\n{{x}}"
        context = {"x": "1", "y": "2"}
        assert substitute(text, context) == substitute(text, context)

    def test_unresolved_reports_location(self) -> None:
        with pytest.raises(UnresolvedPlaceholder) as exc_info:
            substitute("ok\n  {{missing}}", {})
        err = exc_info.value
        assert err.name == "missing"
        assert (err.line, err.column) == (2, 3)
        assert str(err) == "<text>:2:3: unresolved placeholder 'missing'"

    def test_annotate_sets_path(self) -> None:
        with pytest.raises(UnresolvedPlaceholder) as exc_info:
            substitute("{{missing}}", {})
        exc_info.value.annotate("src/Main.java")
        assert str(exc_info.value).startswith("src/Main.java:1:1:")

    def test_many_placeholders_scale_linearly(self) -> None:
        count = 100_000
        text = "line\n{{a}}" * count
        started = time.perf_counter()
        result = substitute(text, {"a": "x"})
        elapsed = time.perf_counter() - started
        assert result.text == "line\nx" * count
        assert elapsed < 5.0

    def test_last_placeholder_position_in_long_text(self) -> None:
        placeholders = find_placeholders("line\n  {{a}}" * 5_000)
        assert len(placeholders) == 5_000
        assert (placeholders[-1].line, placeholders[-1].column) == (5_001, 3)

    def test_exit_codes(self) -> None:
        assert UnresolvedPlaceholder.exit_code == 2
        assert MalformedPlaceholder.exit_code == 2

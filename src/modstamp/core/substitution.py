"""Placeholder tokenizer and single-pass substitution.

Placeholders are identifiers wrapped in double braces, ``{{mod_id}}``. Surrounding
whitespace inside the braces is ignored, so ``{{ mod_id }}`` is equivalent.
Nested delimiters, unclosed ``{{`` and stray ``}}`` are rejected rather than
guessed at.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass
import re

from modstamp.core.errors import MalformedPlaceholder, UnresolvedPlaceholder

OPEN = "{{"
CLOSE = "}}"

IDENTIFIER_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")


@dataclass(frozen=True)
class Literal:
    text: str


@dataclass(frozen=True)
class Placeholder:
    """A placeholder token and its 1-based position in the source text."""

    name: str
    token: str
    line: int
    column: int


Token = Literal | Placeholder


@dataclass(frozen=True)
class Substitution:
    """Output of :func:`substitute`.

    Attributes:
        text: The text with every placeholder replaced.
        referenced: Names of the variables the text referenced.
    """

    text: str
    referenced: frozenset[str]


def _position(text: str, offset: int) -> tuple[int, int]:
    line = text.count("\n", 0, offset) + 1
    column = offset - (text.rfind("\n", 0, offset) + 1) + 1
    return line, column


class _LineCounter:
    """Tracks line and column for offsets visited in increasing order."""

    __slots__ = ("_text", "_offset", "_line", "_line_start")

    def __init__(self, text: str) -> None:
        self._text = text
        self._offset = 0
        self._line = 1
        self._line_start = 0

    def position(self, offset: int) -> tuple[int, int]:
        text = self._text
        self._line += text.count("\n", self._offset, offset)
        newline = text.rfind("\n", self._offset, offset)
        if newline != -1:
            self._line_start = newline + 1
        self._offset = offset
        return self._line, offset - self._line_start + 1


def _malformed(text: str, offset: int, message: str, token: str) -> MalformedPlaceholder:
    line, column = _position(text, offset)
    return MalformedPlaceholder(message, token=token, line=line, column=column)


def tokenize(text: str) -> Iterator[Token]:
    """Split *text* into literal runs and placeholders.

    Raises:
        MalformedPlaceholder: On unbalanced, nested or invalid placeholders.
    """
    pos = 0
    length = len(text)
    lines = _LineCounter(text)
    while pos < length:
        start = text.find(OPEN, pos)
        stray = text.find(CLOSE, pos)

        if stray != -1 and (start == -1 or stray < start):
            raise _malformed(text, stray, "closing '}}' without a matching '{{'", CLOSE)

        if start == -1:
            yield Literal(text[pos:])
            return

        if start > pos:
            yield Literal(text[pos:start])

        end = text.find(CLOSE, start + len(OPEN))
        if end == -1:
            snippet = text[start : start + 32].splitlines()[0]
            raise _malformed(text, start, "unclosed '{{'", snippet)

        nested = text.find(OPEN, start + len(OPEN), end)
        if nested != -1:
            raise _malformed(
                text, nested, "nested '{{' inside a placeholder", text[start : end + len(CLOSE)]
            )

        token = text[start : end + len(CLOSE)]
        name = text[start + len(OPEN) : end].strip()
        if not IDENTIFIER_RE.fullmatch(name):
            raise _malformed(text, start, f"invalid placeholder identifier {name!r}", token)

        line, column = lines.position(start)
        yield Placeholder(name=name, token=token, line=line, column=column)
        pos = end + len(CLOSE)


def find_placeholders(text: str) -> list[Placeholder]:
    """Return every placeholder in *text*, in order of appearance."""
    return [t for t in tokenize(text) if isinstance(t, Placeholder)]


def substitute(text: str, context: Mapping[str, str]) -> Substitution:
    """Replace every placeholder in *text* with its value from *context*.

    Substituted values are not scanned again, so a value that happens to contain
    ``{{`` is emitted as-is.

    Raises:
        MalformedPlaceholder: On unbalanced, nested or invalid placeholders.
        UnresolvedPlaceholder: When a placeholder names a missing variable.
    """
    parts: list[str] = []
    referenced: set[str] = set()
    for token in tokenize(text):
        if isinstance(token, Literal):
            parts.append(token.text)
            continue
        try:
            value = context[token.name]
        except KeyError:
            raise UnresolvedPlaceholder(
                token.name, token=token.token, line=token.line, column=token.column
            ) from None
        parts.append(value)
        referenced.add(token.name)
    return Substitution("".join(parts), frozenset(referenced))

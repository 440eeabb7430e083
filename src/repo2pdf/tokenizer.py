"""Turn highlighter markup into colored, line-structured tokens.

The highlighter hands back one markup string per file. This module scans it with
a two-state parser (outside a span / inside a span), decodes HTML entities, and
re-splits the resulting token stream on newlines so that a multi-line comment
or string keeps its color on every line it covers.
"""

from __future__ import annotations

import html
from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass
from enum import Enum, auto
from typing import Any

from repo2pdf.config import ColorClass, Theme
from repo2pdf.highlighter import CLASS_PREFIX, highlight_markup
from repo2pdf.logging import logger

MarkupFn = Callable[[str, str | None], str]


@dataclass(frozen=True, slots=True)
class Token:
    """A run of text sharing one color class."""

    text: str
    color_class: ColorClass = ColorClass.PLAIN


Line = list[Token]

THEME_COLORS: dict[Theme, dict[ColorClass, str]] = {
    Theme.LIGHT: {
        ColorClass.KEYWORD: "#0000FF",
        ColorClass.STRING: "#008000",
        ColorClass.COMMENT: "#808080",
        ColorClass.NUMBER: "#FF0000",
        ColorClass.FUNCTION: "#000080",
        ColorClass.CLASS: "#800080",
        ColorClass.BUILTIN: "#000080",
        ColorClass.LITERAL: "#0000FF",
        ColorClass.VARIABLE: "#000000",
        ColorClass.OPERATOR: "#000000",
        ColorClass.PUNCTUATION: "#000000",
        ColorClass.PLAIN: "#000000",
    },
    Theme.DARK: {
        ColorClass.KEYWORD: "#569CD6",
        ColorClass.STRING: "#CE9178",
        ColorClass.COMMENT: "#6A9955",
        ColorClass.NUMBER: "#B5CEA8",
        ColorClass.FUNCTION: "#DCDCAA",
        ColorClass.CLASS: "#4EC9B0",
        ColorClass.BUILTIN: "#4FC1FF",
        ColorClass.LITERAL: "#569CD6",
        ColorClass.VARIABLE: "#9CDCFE",
        ColorClass.OPERATOR: "#D4D4D4",
        ColorClass.PUNCTUATION: "#D4D4D4",
        ColorClass.PLAIN: "#D4D4D4",
    },
}

THEME_BACKGROUND: dict[Theme, str] = {
    Theme.LIGHT: "#FFFFFF",
    Theme.DARK: "#1E1E1E",
}

# highlight.js style class names seen in third-party markup.
_CLASS_ALIASES: dict[str, ColorClass] = {
    "built_in": ColorClass.BUILTIN,
    "title": ColorClass.FUNCTION,
    "title.function": ColorClass.FUNCTION,
    "title.class": ColorClass.CLASS,
    "type": ColorClass.CLASS,
    "params": ColorClass.VARIABLE,
    "attr": ColorClass.VARIABLE,
    "meta": ColorClass.KEYWORD,
    "symbol": ColorClass.LITERAL,
    "regexp": ColorClass.STRING,
    "doctag": ColorClass.COMMENT,
}

_WHITESPACE = frozenset(" \t\r\n")


def color_class_for(name: str) -> ColorClass:
    """Map a markup class name to a color class; unknown names are plain."""
    key = name.strip()
    for prefix in (CLASS_PREFIX, "hljs-"):
        if key.startswith(prefix):
            key = key[len(prefix) :]
            break
    try:
        return ColorClass(key)
    except ValueError:
        return _CLASS_ALIASES.get(key, ColorClass.PLAIN)


def color_for(color_class: ColorClass | str, theme: Theme = Theme.LIGHT) -> str:
    """Return the hex display color of a color class in ``theme``."""
    palette = THEME_COLORS[Theme(theme)]
    try:
        return palette[ColorClass(color_class)]
    except ValueError:
        return palette[ColorClass.PLAIN]


def decode_entities(text: str) -> str:
    """Resolve named and numeric character references (``&amp;``, ``&#x27;``...)."""
    return html.unescape(text) if "&" in text else text


def count_lines(text: str) -> int:
    """Count newline-delimited lines; a trailing newline does not open a new line."""
    return len(text.split("\n")) - (1 if text.endswith("\n") else 0)


def normalize_text(text: str) -> str:
    r"""Drop a leading byte order mark and carriage returns.

    ``\r\n`` becomes ``\n`` and a lone ``\r`` is removed, so the line count is unchanged.
    """
    text = text.removeprefix("\ufeff")
    if "\r" in text:
        text = text.replace("\r\n", "\n").replace("\r", "")
    return text


class _State(Enum):
    OUTSIDE_SPAN = auto()
    INSIDE_SPAN = auto()


def _span_class(tag: str) -> ColorClass | None:
    """Return the color class of an opening ``span`` tag, or None for any other tag."""
    name, _, attrs = tag.partition(" ")
    if name.lower() != "span":
        return None
    for quote in ('"', "'"):
        marker = f"class={quote}"
        start = attrs.find(marker)
        if start != -1:
            start += len(marker)
            end = attrs.find(quote, start)
            value = attrs[start:end] if end != -1 else attrs[start:]
            return color_class_for(value.split()[0]) if value.split() else ColorClass.PLAIN
    return ColorClass.PLAIN


class MarkupParser:
    """Scan highlighter markup into ``(text, color class)`` runs.

    Text outside any span is plain; text inside takes the innermost span's class.
    Tags other than ``span`` are treated as zero-width. Runs made only of
    whitespace are always plain so a colored span never owns a line break.
    """

    def __init__(self, markup: str) -> None:
        self.markup = markup
        self.state = _State.OUTSIDE_SPAN
        self._stack: list[ColorClass] = []

    @property
    def current_class(self) -> ColorClass:
        return self._stack[-1] if self._stack else ColorClass.PLAIN

    def _open(self, color_class: ColorClass) -> None:
        self._stack.append(color_class)
        self.state = _State.INSIDE_SPAN

    def _close(self) -> None:
        if self._stack:
            self._stack.pop()
        if not self._stack:
            self.state = _State.OUTSIDE_SPAN

    def _emit(self, raw: str) -> Iterator[tuple[str, ColorClass]]:
        if not raw:
            return
        text = decode_entities(raw)
        if self.state is _State.OUTSIDE_SPAN or set(text) <= _WHITESPACE:
            yield text, ColorClass.PLAIN
        else:
            yield text, self.current_class

    def __iter__(self) -> Iterator[tuple[str, ColorClass]]:
        markup = self.markup
        pos = 0
        size = len(markup)
        while pos < size:
            lt = markup.find("<", pos)
            if lt == -1:
                yield from self._emit(markup[pos:])
                return
            yield from self._emit(markup[pos:lt])
            gt = markup.find(">", lt + 1)
            if gt == -1:
                # Unterminated tag: keep the rest as text.
                yield from self._emit(markup[lt:])
                return
            tag = markup[lt + 1 : gt].strip()
            if tag.startswith("/"):
                if tag[1:].strip().lower() == "span":
                    self._close()
            elif not tag.endswith("/"):
                color_class = _span_class(tag)
                if color_class is not None:
                    self._open(color_class)
            pos = gt + 1


def parse_markup(markup: str) -> Iterator[tuple[str, ColorClass]]:
    """Parse highlighter markup into decoded ``(text, color class)`` runs."""
    return iter(MarkupParser(markup))


def _finish(line: Line) -> Line:
    if any(token.text.strip() for token in line):
        return line
    return [Token("")]


def split_lines(runs: Iterable[tuple[str, ColorClass]], text: str) -> Iterator[Line]:
    """Regroup a run stream into lines.

    Each run is split on newlines: its first fragment extends the line being
    built, every later fragment starts a new line and keeps the run's color, so
    a comment spanning three lines yields three comment-colored lines. A line
    with no visible text is emitted as a single empty plain token; other lines
    keep their whitespace, indentation included.

    Args:
        runs: the decoded ``(text, color class)`` runs, in order
        text: the original text, used to drop the line after a final newline

    Yields:
        Line: one list of tokens per source line
    """
    current: Line = []
    for run_text, color_class in runs:
        for index, fragment in enumerate(run_text.split("\n")):
            if index:
                yield _finish(current)
                current = []
            if fragment:
                current.append(Token(fragment, color_class if fragment.strip() else ColorClass.PLAIN))
    if current or not text.endswith("\n"):
        yield _finish(current)


def plain_lines(text: Any) -> list[Line]:
    """Split text on newlines with every line as a single plain token."""
    if text is None:
        return [[Token("")]]
    if isinstance(text, bytes):
        text = text.decode("utf-8", errors="replace")
    text = str(text)
    pieces = text.split("\n")
    if text.endswith("\n"):
        pieces.pop()
    return [[Token(piece if piece.strip() else "")] for piece in pieces]


def tokenize(
    text: str,
    language_hint: str | None = None,
    *,
    markup_fn: MarkupFn = highlight_markup,
) -> Iterator[Line]:
    r"""Highlight ``text`` and yield its lines as colored tokens.

    The text is first passed through :func:`normalize_text`, as the lexers drop a
    byte order mark and fold ``\r\n`` themselves. The number of lines yielded
    always equals :func:`count_lines` of the input. When the highlighter fails,
    the input is not text, or the decoded markup does not reproduce the
    normalized input, every line is returned as one plain token instead.

    Args:
        text (str): the file content
        language_hint (str | None): language name; None or unknown auto-detects
        markup_fn (MarkupFn): the highlighter, replaceable in tests

    Returns:
        Iterator[Line]: the highlighted lines
    """
    if not isinstance(text, str):
        logger.warning("tokenize_non_text", type=type(text).__name__)
        return iter(plain_lines(text))
    text = normalize_text(text)
    try:
        runs = list(parse_markup(markup_fn(text, language_hint)))
    except Exception as e:  # noqa: BLE001
        logger.warning("highlight_failed", language=language_hint, error=str(e))
        return iter(plain_lines(text))
    if "".join(run_text for run_text, _ in runs) != text:
        logger.warning("highlight_mismatch", language=language_hint)
        return iter(plain_lines(text))
    return split_lines(runs, text)

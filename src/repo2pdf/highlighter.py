"""Pygments front end producing category markup for the tokenizer.

The markup is deliberately small: every highlighted run becomes
``<span class="hl-CATEGORY">escaped text</span>`` where ``CATEGORY`` is one of
:class:`repo2pdf.config.ColorClass`; anything else is left as escaped plain text.
"""

from __future__ import annotations

import html
from typing import TYPE_CHECKING, Any

from pygments import highlight
from pygments.formatter import Formatter
from pygments.lexers import get_lexer_by_name, guess_lexer
from pygments.token import Comment, Keyword, Literal, Name, Number, Operator, Punctuation, String
from pygments.util import ClassNotFound

from repo2pdf.config import ColorClass
from repo2pdf.logging import logger

if TYPE_CHECKING:
    from collections.abc import Iterable
    from typing import TextIO

    from pygments.lexer import Lexer
    from pygments.token import _TokenType

CLASS_PREFIX = "hl-"

# Ordered: the first entry containing the token type wins.
_CATEGORY_BY_TOKEN: tuple[tuple[_TokenType, ColorClass], ...] = (
    (Comment, ColorClass.COMMENT),
    (Keyword.Constant, ColorClass.LITERAL),
    (Keyword, ColorClass.KEYWORD),
    (String, ColorClass.STRING),
    (Number, ColorClass.NUMBER),
    (Literal, ColorClass.LITERAL),
    (Name.Function, ColorClass.FUNCTION),
    (Name.Decorator, ColorClass.FUNCTION),
    (Name.Class, ColorClass.CLASS),
    (Name.Builtin, ColorClass.BUILTIN),
    (Name.Variable, ColorClass.VARIABLE),
    (Operator.Word, ColorClass.KEYWORD),
    (Operator, ColorClass.OPERATOR),
    (Punctuation, ColorClass.PUNCTUATION),
)

# Lexer options keeping the token stream byte-for-byte aligned with the input.
_LEXER_OPTIONS: dict[str, Any] = {"stripnl": False, "ensurenl": False}


def category_for_token(ttype: _TokenType) -> ColorClass:
    """Fold a Pygments token type into its semantic color class."""
    for parent, category in _CATEGORY_BY_TOKEN:
        if ttype in parent:
            return category
    return ColorClass.PLAIN


class CategoryHtmlFormatter(Formatter):
    """Pygments formatter writing the ``hl-`` span markup."""

    name = "Category HTML"
    aliases: list[str] = []  # noqa: RUF012
    filenames: list[str] = []  # noqa: RUF012

    def format(self, tokensource: Iterable[tuple[_TokenType, str]], outfile: TextIO) -> None:
        for ttype, value in tokensource:
            if not value:
                continue
            category = category_for_token(ttype)
            escaped = html.escape(value)
            if category is ColorClass.PLAIN:
                outfile.write(escaped)
            else:
                outfile.write(f'<span class="{CLASS_PREFIX}{category}">{escaped}</span>')


def resolve_lexer(text: str, language: str | None) -> Lexer:
    """Pick a lexer from an explicit language name, or auto-detect one.

    Args:
        text (str): the source text, used for auto-detection
        language (str | None): a Pygments lexer name or alias; may be unknown

    Returns:
        Lexer: the lexer to use
    """
    if language:
        try:
            return get_lexer_by_name(language, **_LEXER_OPTIONS)
        except ClassNotFound:
            logger.debug("lexer_not_found", language=language)
    return guess_lexer(text, **_LEXER_OPTIONS)


def highlight_markup(text: str, language: str | None = None) -> str:
    """Highlight ``text`` and return the category span markup.

    Args:
        text (str): raw source text
        language (str | None): language hint; None or unknown triggers auto-detection

    Returns:
        str: the markup, with all text HTML-escaped
    """
    lexer = resolve_lexer(text, language)
    return highlight(text, lexer, CategoryHtmlFormatter())

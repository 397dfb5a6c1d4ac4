"""Tokenizer grammar: match, range, and repository patterns.

A grammar is a tree of three pattern kinds. Siblings are always tried in
declaration order and the first one that matches wins, regardless of how
much text a later sibling could have matched.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum, auto
from typing import Union

from rpyfront.tokens import TokenType


@dataclass(frozen=True, slots=True)
class MatchPattern:
    """A regex matched at the current position; emits one token."""

    match: re.Pattern[str]
    token_type: TokenType
    meta_type: TokenType | None = None


@dataclass(frozen=True, slots=True)
class RangePattern:
    """A begin/end delimiter pair whose body may hold nested patterns.

    Body text not claimed by a nested pattern becomes ``content_type``
    tokens. A zero-width ``end`` closes the range without a token.
    """

    begin: re.Pattern[str]
    end: re.Pattern[str]
    begin_type: TokenType
    end_type: TokenType
    content_type: TokenType
    patterns: tuple[Pattern, ...] = ()
    meta_type: TokenType | None = None


@dataclass(frozen=True, slots=True)
class RepoPattern:
    """An ordered list of alternatives."""

    patterns: tuple[Pattern, ...]


Pattern = Union[MatchPattern, RangePattern, RepoPattern]


class PatternKind(Enum):
    MATCH = auto()
    RANGE = auto()
    REPO = auto()


def pattern_kind(pattern: Pattern) -> PatternKind:
    """Discriminate a pattern. Every new pattern kind must be added here."""
    if isinstance(pattern, MatchPattern):
        return PatternKind.MATCH
    if isinstance(pattern, RangePattern):
        return PatternKind.RANGE
    if isinstance(pattern, RepoPattern):
        return PatternKind.REPO
    raise TypeError(f"not a tokenizer pattern: {type(pattern).__name__}")


def _match(regex: str, tt: TokenType, meta: TokenType | None = None) -> MatchPattern:
    return MatchPattern(re.compile(regex), tt, meta)


def _literal(text: str, tt: TokenType) -> MatchPattern:
    return MatchPattern(re.compile(re.escape(text)), tt)


# ----------------------------------------------------------------------
# Ren'Py grammar
# ----------------------------------------------------------------------

KEYWORDS: dict[str, TokenType] = {
    "label": TokenType.LABEL,
    "jump": TokenType.JUMP,
    "call": TokenType.CALL,
    "return": TokenType.RETURN,
    "pass": TokenType.PASS,
    "default": TokenType.DEFAULT,
    "define": TokenType.DEFINE,
    "init": TokenType.INIT,
    "python": TokenType.PYTHON,
    "early": TokenType.EARLY,
    "menu": TokenType.MENU,
    "if": TokenType.IF,
    "elif": TokenType.ELIF,
    "else": TokenType.ELSE,
    "while": TokenType.WHILE,
    "for": TokenType.FOR,
    "in": TokenType.IN,
    "from": TokenType.FROM,
    "expression": TokenType.EXPRESSION,
    "scene": TokenType.SCENE,
    "show": TokenType.SHOW,
    "hide": TokenType.HIDE,
    "with": TokenType.WITH,
    "at": TokenType.AT,
    "as": TokenType.AS,
    "behind": TokenType.BEHIND,
    "onlayer": TokenType.ONLAYER,
    "play": TokenType.PLAY,
    "stop": TokenType.STOP,
    "queue": TokenType.QUEUE,
    "pause": TokenType.PAUSE,
    "voice": TokenType.VOICE,
    "image": TokenType.IMAGE,
    "screen": TokenType.SCREEN,
    "transform": TokenType.TRANSFORM,
    "and": TokenType.AND,
    "or": TokenType.OR,
    "not": TokenType.NOT,
    "is": TokenType.IS,
}

IDENTIFIER_PATTERN = _match(r"[^\W\d]\w*", TokenType.IDENTIFIER)
INTEGER_PATTERN = _match(r"\d+", TokenType.INTEGER)

COMMENT_PATTERN = _match(r"#[^\r\n]*", TokenType.COMMENT, TokenType.COMMENT)
WHITESPACE_PATTERN = _match(r"[ \t]+", TokenType.WHITESPACE)
NEWLINE_PATTERN = _match(r"\r?\n", TokenType.NEWLINE)

# An unclosed tag or interpolation ends, zero width, before a quote or line break.
INTERPOLATION_PATTERN = RangePattern(
    begin=re.compile(r"\["),
    end=re.compile(r"\]|(?=[\"'\r\n])"),
    begin_type=TokenType.OPEN_BRACKET,
    end_type=TokenType.CLOSE_BRACKET,
    content_type=TokenType.STRING,
    patterns=(IDENTIFIER_PATTERN, INTEGER_PATTERN, _literal(".", TokenType.PERIOD)),
    meta_type=TokenType.INTERPOLATION,
)

TEXT_TAG_PATTERN = RangePattern(
    begin=re.compile(r"\{"),
    end=re.compile(r"\}|(?=[\"'\r\n])"),
    begin_type=TokenType.OPEN_BRACE,
    end_type=TokenType.CLOSE_BRACE,
    content_type=TokenType.STRING,
    meta_type=TokenType.TEXT_TAG,
)

STRING_CONTENT_PATTERNS: tuple[Pattern, ...] = (
    _match(r"\\n", TokenType.ESCAPED_NEWLINE),
    _match(r"\\[\"']", TokenType.ESCAPED_QUOTE),
    _match(r"\\\\", TokenType.ESCAPED_BACKSLASH),
    _match(r"\\.", TokenType.ESCAPED_CHARACTER),
    _literal("[[", TokenType.ESCAPED_OPEN_BRACKET),
    _literal("{{", TokenType.ESCAPED_OPEN_BRACE),
    _literal("%%", TokenType.ESCAPED_PERCENT),
    INTERPOLATION_PATTERN,
    TEXT_TAG_PATTERN,
)


def _string(delimiter: str, tt: TokenType) -> RangePattern:
    return RangePattern(
        begin=re.compile(re.escape(delimiter)),
        end=re.compile(re.escape(delimiter)),
        begin_type=tt,
        end_type=tt,
        content_type=TokenType.STRING,
        patterns=STRING_CONTENT_PATTERNS,
        meta_type=TokenType.STRING_LITERAL,
    )


STRING_PATTERNS = RepoPattern(
    (
        _string('"""', TokenType.DOUBLE_QUOTE),
        _string("'''", TokenType.SINGLE_QUOTE),
        _string('"', TokenType.DOUBLE_QUOTE),
        _string("'", TokenType.SINGLE_QUOTE),
    )
)

KEYWORD_PATTERNS = RepoPattern(
    tuple(_match(rf"{re.escape(word)}\b", tt) for word, tt in KEYWORDS.items())
)

CONSTANT_PATTERNS = RepoPattern(
    (
        _match(r"(?:True|False)\b", TokenType.BOOLEAN),
        _match(r"None\b", TokenType.NULL),
        _match(r"\d+\.\d*(?:[eE][+-]?\d+)?|\.\d+(?:[eE][+-]?\d+)?", TokenType.FLOAT),
        INTEGER_PATTERN,
    )
)

# Multi-character operators must precede their single-character prefixes.
OPERATOR_PATTERNS = RepoPattern(
    (
        _literal("==", TokenType.EQUALS),
        _literal("!=", TokenType.NOT_EQUALS),
        _literal("<=", TokenType.LESS_EQUAL),
        _literal(">=", TokenType.GREATER_EQUAL),
        _literal("+=", TokenType.PLUS_ASSIGN),
        _literal("-=", TokenType.MINUS_ASSIGN),
        _literal("*=", TokenType.MULTIPLY_ASSIGN),
        _literal("/=", TokenType.DIVIDE_ASSIGN),
        _literal("=", TokenType.ASSIGN),
        _literal("+", TokenType.PLUS),
        _literal("-", TokenType.MINUS),
        _literal("*", TokenType.MULTIPLY),
        _literal("/", TokenType.DIVIDE),
        _literal("%", TokenType.MODULO),
        _literal("<", TokenType.LESS),
        _literal(">", TokenType.GREATER),
    )
)

CHARACTER_PATTERNS = RepoPattern(
    (
        _literal(":", TokenType.COLON),
        _literal(",", TokenType.COMMA),
        _literal(".", TokenType.PERIOD),
        _literal("(", TokenType.OPEN_PAREN),
        _literal(")", TokenType.CLOSE_PAREN),
        _literal("[", TokenType.OPEN_BRACKET),
        _literal("]", TokenType.CLOSE_BRACKET),
        _literal("{", TokenType.OPEN_BRACE),
        _literal("}", TokenType.CLOSE_BRACE),
        _literal("$", TokenType.DOLLAR),
    )
)

RENPY_PATTERNS = RepoPattern(
    (
        COMMENT_PATTERN,
        STRING_PATTERNS,
        KEYWORD_PATTERNS,
        CONSTANT_PATTERNS,
        IDENTIFIER_PATTERN,
        OPERATOR_PATTERNS,
        CHARACTER_PATTERNS,
        WHITESPACE_PATTERN,
        NEWLINE_PATTERN,
    )
)

"""Token types, positions, and the filterable token stream."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from enum import Enum, IntEnum, auto
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from rpyfront.document import TextDocument

logger = logging.getLogger(__name__)


class TokenTypeIndex(IntEnum):
    """First value of each contiguous token type range."""

    KEYWORD_START = 0
    ENTITY_START = 100
    CONSTANT_START = 200
    OPERATOR_START = 300
    CHARACTER_START = 400
    ESCAPED_CHARACTER_START = 500
    META_START = 600
    UNKNOWN_START = 700


class TokenType(IntEnum):
    # Keywords
    LABEL = TokenTypeIndex.KEYWORD_START
    JUMP = auto()
    CALL = auto()
    RETURN = auto()
    PASS = auto()
    DEFAULT = auto()
    DEFINE = auto()
    INIT = auto()
    PYTHON = auto()
    EARLY = auto()
    MENU = auto()
    IF = auto()
    ELIF = auto()
    ELSE = auto()
    WHILE = auto()
    FOR = auto()
    IN = auto()
    FROM = auto()
    EXPRESSION = auto()
    SCENE = auto()
    SHOW = auto()
    HIDE = auto()
    WITH = auto()
    AT = auto()
    AS = auto()
    BEHIND = auto()
    ONLAYER = auto()
    PLAY = auto()
    STOP = auto()
    QUEUE = auto()
    PAUSE = auto()
    VOICE = auto()
    IMAGE = auto()
    SCREEN = auto()
    TRANSFORM = auto()
    AND = auto()
    OR = auto()
    NOT = auto()
    IS = auto()

    # Entities
    IDENTIFIER = TokenTypeIndex.ENTITY_START

    # Constants
    BOOLEAN = TokenTypeIndex.CONSTANT_START
    NULL = auto()
    INTEGER = auto()
    FLOAT = auto()
    STRING = auto()  # body text of a string literal

    # Operators
    EQUALS = TokenTypeIndex.OPERATOR_START  # ==
    NOT_EQUALS = auto()  # !=
    LESS_EQUAL = auto()  # <=
    GREATER_EQUAL = auto()  # >=
    PLUS_ASSIGN = auto()  # +=
    MINUS_ASSIGN = auto()  # -=
    MULTIPLY_ASSIGN = auto()  # *=
    DIVIDE_ASSIGN = auto()  # /=
    ASSIGN = auto()  # =
    PLUS = auto()
    MINUS = auto()
    MULTIPLY = auto()
    DIVIDE = auto()
    MODULO = auto()
    LESS = auto()
    GREATER = auto()

    # Characters
    COLON = TokenTypeIndex.CHARACTER_START
    COMMA = auto()
    PERIOD = auto()
    OPEN_PAREN = auto()
    CLOSE_PAREN = auto()
    OPEN_BRACKET = auto()
    CLOSE_BRACKET = auto()
    OPEN_BRACE = auto()
    CLOSE_BRACE = auto()
    DOLLAR = auto()
    DOUBLE_QUOTE = auto()  # " or """
    SINGLE_QUOTE = auto()  # ' or '''
    WHITESPACE = auto()  # horizontal whitespace (spaces/tabs)
    NEWLINE = auto()  # \n or \r\n

    # Escaped characters (inside strings)
    ESCAPED_NEWLINE = TokenTypeIndex.ESCAPED_CHARACTER_START  # \n
    ESCAPED_QUOTE = auto()  # \" or \'
    ESCAPED_BACKSLASH = auto()  # \\
    ESCAPED_OPEN_BRACKET = auto()  # [[
    ESCAPED_OPEN_BRACE = auto()  # {{
    ESCAPED_PERCENT = auto()  # %%
    ESCAPED_CHARACTER = auto()  # any other \x

    # Meta (secondary classifications)
    COMMENT = TokenTypeIndex.META_START
    STRING_LITERAL = auto()
    INTERPOLATION = auto()  # [expr] inside a string
    TEXT_TAG = auto()  # {tag} inside a string

    # Sentinels
    UNKNOWN = TokenTypeIndex.UNKNOWN_START
    INVALID = auto()


class TokenCategory(Enum):
    KEYWORD = auto()
    ENTITY = auto()
    CONSTANT = auto()
    OPERATOR = auto()
    CHARACTER = auto()
    ESCAPED_CHARACTER = auto()
    META = auto()
    UNKNOWN = auto()
    INVALID = auto()


_CATEGORY_RANGES: tuple[tuple[int, int, TokenCategory], ...] = (
    (TokenTypeIndex.KEYWORD_START, TokenTypeIndex.ENTITY_START, TokenCategory.KEYWORD),
    (TokenTypeIndex.ENTITY_START, TokenTypeIndex.CONSTANT_START, TokenCategory.ENTITY),
    (TokenTypeIndex.CONSTANT_START, TokenTypeIndex.OPERATOR_START, TokenCategory.CONSTANT),
    (TokenTypeIndex.OPERATOR_START, TokenTypeIndex.CHARACTER_START, TokenCategory.OPERATOR),
    (
        TokenTypeIndex.CHARACTER_START,
        TokenTypeIndex.ESCAPED_CHARACTER_START,
        TokenCategory.CHARACTER,
    ),
    (
        TokenTypeIndex.ESCAPED_CHARACTER_START,
        TokenTypeIndex.META_START,
        TokenCategory.ESCAPED_CHARACTER,
    ),
    (TokenTypeIndex.META_START, TokenTypeIndex.UNKNOWN_START, TokenCategory.META),
)


def token_category(tt: TokenType) -> TokenCategory:
    """Classify a token type by range membership."""
    if tt == TokenType.UNKNOWN:
        return TokenCategory.UNKNOWN
    if tt == TokenType.INVALID:
        return TokenCategory.INVALID
    for low, high, category in _CATEGORY_RANGES:
        if low <= tt < high:
            return category
    raise ValueError(f"token type {tt!r} is outside every category range")


@dataclass(slots=True)
class Position:
    """Mutable source position: 0-based line, character and absolute offset."""

    line: int
    character: int
    offset: int

    def next(self) -> None:
        """Move the position by one character."""
        self.character += 1
        self.offset += 1

    def advance(self, amount: int) -> None:
        self.character += amount
        self.offset += amount

    def next_line(self) -> None:
        """Move to the start of the next line. The offset is left to the caller."""
        self.line += 1
        self.character = 0

    def clone(self) -> Position:
        return Position(self.line, self.character, self.offset)

    def set_value(self, other: Position) -> None:
        self.line = other.line
        self.character = other.character
        self.offset = other.offset

    def _key(self) -> tuple[int, int]:
        return (self.line, self.character)

    def __lt__(self, other: Position) -> bool:
        return self._key() < other._key()

    def __le__(self, other: Position) -> bool:
        return self._key() <= other._key()

    def __gt__(self, other: Position) -> bool:
        return self._key() > other._key()

    def __ge__(self, other: Position) -> bool:
        return self._key() >= other._key()

    def __str__(self) -> str:
        return f"L{self.line + 1}:C{self.character + 1}"


@dataclass(slots=True)
class Span:
    """Source range from start to end position."""

    start: Position
    end: Position

    def overlaps(self, other: Span) -> bool:
        return self.start <= other.end and other.start <= self.end

    def contains(self, offset: int) -> bool:
        return self.start.offset <= offset <= self.end.offset

    def is_empty(self) -> bool:
        return self.start.line == self.end.line and self.start.character == self.end.character


@dataclass(frozen=True, slots=True)
class Token:
    """A classified span of source text.

    ``start`` and ``end`` are owned by the token; the tokenizer hands out
    snapshots of its working cursor, never the cursor itself.
    """

    type: TokenType
    start: Position
    end: Position
    meta_types: frozenset[TokenType] = field(default_factory=frozenset)

    def get_span(self) -> Span:
        span = Span(self.start.clone(), self.end.clone())
        if span.is_empty():
            logger.warning("Empty token detected at %s", self.start)
        return span

    def get_value(self, document: TextDocument) -> str:
        return document.text[self.start.offset : self.end.offset]

    def has_meta_token(self, tt: TokenType) -> bool:
        return tt in self.meta_types

    @property
    def category(self) -> TokenCategory:
        return token_category(self.type)

    def is_keyword(self) -> bool:
        return TokenTypeIndex.KEYWORD_START <= self.type < TokenTypeIndex.ENTITY_START

    def is_entity(self) -> bool:
        return TokenTypeIndex.ENTITY_START <= self.type < TokenTypeIndex.CONSTANT_START

    def is_constant(self) -> bool:
        return TokenTypeIndex.CONSTANT_START <= self.type < TokenTypeIndex.OPERATOR_START

    def is_operator(self) -> bool:
        return TokenTypeIndex.OPERATOR_START <= self.type < TokenTypeIndex.CHARACTER_START

    def is_character(self) -> bool:
        return TokenTypeIndex.CHARACTER_START <= self.type < TokenTypeIndex.ESCAPED_CHARACTER_START

    def is_escaped_character(self) -> bool:
        return TokenTypeIndex.ESCAPED_CHARACTER_START <= self.type < TokenTypeIndex.META_START

    def is_meta_token(self) -> bool:
        return TokenTypeIndex.META_START <= self.type < TokenTypeIndex.UNKNOWN_START

    def is_unknown_character(self) -> bool:
        return self.type == TokenType.UNKNOWN

    def is_invalid(self) -> bool:
        return self.type == TokenType.INVALID

    def __str__(self) -> str:
        return f"{self.type.name}({self.start}-{self.end})"


class TokenList:
    """Ordered, replayable token sequence produced by the tokenizer."""

    def __init__(self, tokens: Iterable[Token] = ()) -> None:
        self._tokens: list[Token] = list(tokens)

    def append(self, token: Token) -> None:
        self._tokens.append(token)

    def get_iterator(self) -> TokenListIterator:
        return TokenListIterator(self._tokens)

    def __len__(self) -> int:
        return len(self._tokens)

    def __iter__(self) -> Iterator[Token]:
        return iter(self._tokens)

    def __getitem__(self, index: int) -> Token:
        return self._tokens[index]


class TokenListIterator:
    """Cursor over a token list that transparently skips filtered tokens."""

    def __init__(
        self,
        tokens: list[Token],
        index: int = 0,
        token_filter: frozenset[TokenType] = frozenset(),
    ) -> None:
        self._tokens = tokens
        self._index = index
        self._filter = token_filter
        self._skip_filtered()

    def _is_filtered(self, token: Token) -> bool:
        return token.type in self._filter or not self._filter.isdisjoint(token.meta_types)

    def _skip_filtered(self) -> None:
        while self._index < len(self._tokens) and self._is_filtered(self._tokens[self._index]):
            self._index += 1

    def set_filter(self, token_filter: Iterable[TokenType]) -> None:
        """Skip the given token types (or meta types) from now on."""
        self._filter = frozenset(token_filter)
        self._skip_filtered()

    @property
    def token(self) -> Token | None:
        """The token under the cursor, without consuming it."""
        if self._index < len(self._tokens):
            return self._tokens[self._index]
        return None

    def has_next(self) -> bool:
        return self._index < len(self._tokens)

    def next(self) -> Token:
        """Consume and return the token under the cursor."""
        if self._index >= len(self._tokens):
            raise StopIteration
        tok = self._tokens[self._index]
        self._index += 1
        self._skip_filtered()
        return tok

    def peek(self, offset: int = 0) -> Token | None:
        """Return the unfiltered token ``offset`` places ahead of the cursor."""
        it = self.clone()
        for _ in range(offset):
            if not it.has_next():
                return None
            it.next()
        return it.token

    def clone(self) -> TokenListIterator:
        return TokenListIterator(self._tokens, self._index, self._filter)

"""Pattern-driven tokenizer: converts document text into a flat token list."""

from __future__ import annotations

import asyncio
import logging

from rpyfront.document import TextDocument
from rpyfront.patterns import RENPY_PATTERNS, Pattern, PatternKind, RangePattern, pattern_kind
from rpyfront.tokens import Position, Token, TokenList, TokenType

logger = logging.getLogger(__name__)

_NO_META: frozenset[TokenType] = frozenset()


class Tokenizer:
    """Tokenize a document against a pattern grammar.

    The output covers every character exactly once: text that no pattern
    claims becomes UNKNOWN tokens, one per contiguous run.
    """

    def __init__(self, document: TextDocument, grammar: Pattern = RENPY_PATTERNS) -> None:
        self._document = document
        self._text = document.text
        self._grammar = grammar
        self._cursor = Position(0, 0, 0)
        self._tokens = TokenList()
        # (type, start, meta) of a content or unknown run not yet emitted
        self._pending: tuple[TokenType, Position, frozenset[TokenType]] | None = None

    def tokenize(self) -> TokenList:
        """Tokenize the full document and return the token list."""
        while self._cursor.offset < len(self._text):
            if not self._try_pattern(self._grammar, _NO_META):
                self._accumulate(TokenType.UNKNOWN, _NO_META)
        self._flush()
        logger.debug("Tokenized %s into %d tokens", self._document.filename, len(self._tokens))
        return self._tokens

    # ------------------------------------------------------------------
    # Cursor and emission
    # ------------------------------------------------------------------

    def _advance_over(self, length: int) -> None:
        end = self._cursor.offset + length
        for ch in self._text[self._cursor.offset : end]:
            self._cursor.next()
            if ch == "\n":
                self._cursor.next_line()

    def _emit(self, tt: TokenType, length: int, meta: frozenset[TokenType]) -> None:
        self._flush()
        start = self._cursor.clone()
        self._advance_over(length)
        self._tokens.append(Token(tt, start, self._cursor.clone(), meta))

    def _accumulate(self, tt: TokenType, meta: frozenset[TokenType]) -> None:
        """Add one character to the pending run of ``tt``."""
        if self._pending is not None and (self._pending[0], self._pending[2]) != (tt, meta):
            self._flush()
        if self._pending is None:
            self._pending = (tt, self._cursor.clone(), meta)
        self._advance_over(1)

    def _flush(self) -> None:
        if self._pending is None:
            return
        tt, start, meta = self._pending
        self._pending = None
        self._tokens.append(Token(tt, start, self._cursor.clone(), meta))

    # ------------------------------------------------------------------
    # Pattern dispatch
    # ------------------------------------------------------------------

    def _try_pattern(self, pattern: Pattern, meta: frozenset[TokenType]) -> bool:
        kind = pattern_kind(pattern)

        if kind == PatternKind.REPO:
            for child in pattern.patterns:
                if self._try_pattern(child, meta):
                    return True
            return False

        offset = self._cursor.offset

        if kind == PatternKind.MATCH:
            m = pattern.match.match(self._text, offset)
            if m is None or m.end() == offset:
                return False
            if pattern.meta_type is not None:
                meta = meta | {pattern.meta_type}
            self._emit(pattern.token_type, m.end() - offset, meta)
            return True

        m = pattern.begin.match(self._text, offset)
        if m is None or m.end() == offset:
            return False
        if pattern.meta_type is not None:
            meta = meta | {pattern.meta_type}
        self._emit(pattern.begin_type, m.end() - offset, meta)
        self._tokenize_range_body(pattern, meta)
        return True

    def _tokenize_range_body(self, pattern: RangePattern, meta: frozenset[TokenType]) -> None:
        while self._cursor.offset < len(self._text):
            offset = self._cursor.offset
            end = pattern.end.match(self._text, offset)
            if end is not None:
                if end.end() > offset:
                    self._emit(pattern.end_type, end.end() - offset, meta)
                else:
                    self._flush()
                return

            for child in pattern.patterns:
                if self._try_pattern(child, meta):
                    break
            else:
                self._accumulate(pattern.content_type, meta)

        # Unterminated range: the body runs to the end of the document.
        self._flush()


def tokenize(source: str, filename: str = "input.rpy") -> TokenList:
    """Convenience function: tokenize source text and return the token list."""
    return Tokenizer(TextDocument(source, filename)).tokenize()


async def tokenize_document(document: TextDocument) -> TokenList:
    """Tokenize ``document`` without blocking the running event loop."""
    return await asyncio.to_thread(Tokenizer(document).tokenize)

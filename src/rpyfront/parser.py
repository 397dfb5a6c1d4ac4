"""Ren'Py parser: drives grammar rules over a filtered token stream."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Iterator, Sequence
from contextlib import contextmanager
from typing import TypeVar

from rpyfront.document import Location, TextDocument
from rpyfront.errors import ParseError, ParseErrorType, ParserStateError
from rpyfront.lexer import tokenize_document
from rpyfront.program import Program, Scope, Symbol
from rpyfront.rules import GrammarRule, parse_program
from rpyfront.tokens import Position, Span, Token, TokenListIterator, TokenType

logger = logging.getLogger(__name__)

T = TypeVar("T")

INVALID_TOKEN = Token(TokenType.INVALID, Position(0, 0, -1), Position(0, 0, -1))

_PARSER_FILTER = frozenset({TokenType.COMMENT, TokenType.WHITESPACE})


def _resolve_dotted(scope: Scope, name: str) -> Symbol | None:
    parts = name.split(".")
    for n in range(len(parts), 0, -1):
        symbol = scope.resolve(".".join(parts[:n]))
        if symbol is not None:
            return symbol
    return None


class DocumentParser:
    """Parse one document into a :class:`Program`.

    ``current()`` is the last consumed token and ``peek_next()`` the
    lookahead. Errors are recorded, never raised: every primitive leaves the
    parser in a usable state and parsing always runs to the end of input.
    """

    def __init__(self, document: TextDocument) -> None:
        self._document = document
        self.program = Program(document)
        self._it: TokenListIterator | None = None
        self._current_token = INVALID_TOKEN
        # last consumed token that is not a line break; statement spans end here
        self._last_significant = INVALID_TOKEN
        self._errors: list[ParseError] = []
        self._initialized = False
        self._scope_stack: list[Scope] = [self.program.global_scope]
        self._pending_label_references: list[tuple[str, Location]] = []
        self._pending_symbol_references: list[tuple[str, Scope, Location]] = []

    @property
    def document(self) -> TextDocument:
        return self._document

    @property
    def errors(self) -> list[ParseError]:
        return self._errors

    async def initialize(self) -> None:
        """Tokenize the document and position the lookahead on the first token."""
        if self._initialized:
            raise ParserStateError("DocumentParser.initialize() called twice.")
        self._initialized = True

        tokens = await tokenize_document(self._document)
        self._it = tokens.get_iterator()
        self._it.set_filter(_PARSER_FILTER)
        self._current_token = INVALID_TOKEN

    def parse(self) -> Program:
        """Parse every statement in the document and return the program."""
        self._iterator()
        self.program.statements.extend(parse_program(self))
        self._resolve_pending_symbol_references()
        self._resolve_pending_label_references()
        return self.program

    def _iterator(self) -> TokenListIterator:
        if self._it is None:
            raise ParserStateError("DocumentParser.initialize() must be awaited first.")
        return self._it

    # ------------------------------------------------------------------
    # Errors
    # ------------------------------------------------------------------

    def add_error(self, error_type: ParseErrorType, expected: TokenType | None = None) -> None:
        current = self.current()
        lookahead = self.peek_next()
        anchor = lookahead if not lookahead.is_invalid() else current
        location = None if anchor.is_invalid() else self.location_from_token(anchor)
        error = ParseError(
            message="",
            error_location=location,
            error_type=error_type,
            current_token=current,
            next_token=lookahead,
            expected_token_type=expected,
        )
        error.message = self.get_error_message(error)
        self._errors.append(error)
        self.program.error_list.append(error)

    def get_error_message(self, error: ParseError) -> str:
        if error.error_type == ParseErrorType.UNEXPECTED_END_OF_FILE:
            return "Unexpected end of file"
        if error.error_type == ParseErrorType.UNEXPECTED_TOKEN:
            return (
                f"Expected token of type '{self.get_token_type_string(error.expected_token_type)}', "
                f"but got '{self.get_token_type_string(error.next_token.type)}'"
            )
        return "Unexpected end of line"

    @staticmethod
    def get_token_type_string(tt: TokenType | None) -> str:
        if tt is None:
            return "None"
        return tt.name

    def print_errors(self) -> None:
        for error in self._errors:
            where = error.next_token.start if not error.next_token.is_invalid() else "end of file"
            logger.error("%s\n\tat: %s", error.message, where)

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    def next(self) -> None:
        it = self._iterator()
        if not it.has_next():
            self.add_error(ParseErrorType.UNEXPECTED_END_OF_FILE)
            return
        self._current_token = it.next()
        if self._current_token.type != TokenType.NEWLINE:
            self._last_significant = self._current_token

    def has_next(self) -> bool:
        return self._iterator().has_next()

    def current(self) -> Token:
        return self._current_token

    def current_value(self) -> str:
        return self._current_token.get_value(self._document)

    def peek_next(self) -> Token:
        return self._iterator().token or INVALID_TOKEN

    def peek(self, offset: int) -> Token:
        """Return the token ``offset`` places past the lookahead, without consuming."""
        return self._iterator().peek(offset) or INVALID_TOKEN

    def column(self) -> int:
        """Character column of the lookahead token."""
        return self.peek_next().start.character

    def skip_empty_lines(self) -> None:
        while self.test(TokenType.NEWLINE):
            self.next()

    def skip_to_eol(self) -> None:
        while self.has_next() and not self.test(TokenType.NEWLINE):
            self.next()

    def at_eol(self) -> bool:
        return self.test(TokenType.NEWLINE) or not self.has_next()

    def expect_eol(self) -> bool:
        """Require the end of the line, then skip to it. Returns True at a line break."""
        if not self.at_eol():
            self.add_error(ParseErrorType.UNEXPECTED_END_OF_LINE)
        self.skip_to_eol()
        return self.test(TokenType.NEWLINE)

    # ------------------------------------------------------------------
    # Token primitives
    # ------------------------------------------------------------------

    def test(self, tt: TokenType) -> bool:
        lookahead = self.peek_next()
        return lookahead.type == tt or lookahead.has_meta_token(tt)

    def test_value(self, value: str) -> bool:
        return self.peek_next().get_value(self._document) == value

    def require_token(self, tt: TokenType) -> bool:
        if self.test(tt):
            self.next()
            return True
        self.add_error(ParseErrorType.UNEXPECTED_TOKEN, tt)
        return False

    def optional_token(self, tt: TokenType) -> bool:
        if self.test(tt):
            self.next()
            return True
        return False

    def any_of_token(self, token_types: Iterable[TokenType]) -> bool:
        for tt in token_types:
            if self.test(tt):
                self.next()
                return True
        self.add_error(ParseErrorType.UNEXPECTED_TOKEN)
        return False

    # ------------------------------------------------------------------
    # Rule combinators
    # ------------------------------------------------------------------

    def optional(self, rule: GrammarRule[T]) -> T | None:
        if not rule.test(self):
            return None
        return rule.parse(self)

    def require(self, rule: GrammarRule[T]) -> T | None:
        return rule.parse(self)

    def any_of(self, rules: Sequence[GrammarRule[T]]) -> T | None:
        for rule in rules:
            if rule.test(self):
                return rule.parse(self)
        self.add_error(ParseErrorType.UNEXPECTED_END_OF_LINE)
        return None

    # ------------------------------------------------------------------
    # Scopes and symbols
    # ------------------------------------------------------------------

    @property
    def current_scope(self) -> Scope:
        return self._scope_stack[-1]

    def push_scope(self, parent_label: Symbol | None = None) -> Scope:
        scope = self.program.create_scope(self.current_scope, parent_label)
        self._scope_stack.append(scope)
        return scope

    def pop_scope(self) -> Scope:
        if len(self._scope_stack) <= 1:
            raise ParserStateError("cannot pop the global scope")
        return self._scope_stack.pop()

    @contextmanager
    def scope(self, parent_label: Symbol | None = None) -> Iterator[Scope]:
        scope = self.push_scope(parent_label)
        try:
            yield scope
        finally:
            self.pop_scope()

    def reference_symbol(self, name: str, location: Location) -> Symbol | None:
        """Record a use of ``name``, trying the longest dotted prefix first.

        ``define`` and ``default`` run at init time, so a use that does not
        resolve yet is retried from the same scope after parsing.
        """
        symbol = _resolve_dotted(self.current_scope, name)
        if symbol is None:
            self._pending_symbol_references.append((name, self.current_scope, location))
            return None
        symbol.add_reference(location)
        return symbol

    def reference_label(self, name: str, location: Location) -> Symbol | None:
        """Record a use of label ``name``; unknown labels are retried after parsing."""
        label = self.program.global_scope.resolve_label(name)
        if label is None:
            self._pending_label_references.append((name, location))
            return None
        label.add_reference(location)
        return label

    def _resolve_pending_symbol_references(self) -> None:
        pending, self._pending_symbol_references = self._pending_symbol_references, []
        for name, scope, location in pending:
            symbol = _resolve_dotted(scope, name)
            if symbol is not None:
                symbol.add_reference(location)
            else:
                logger.debug("Symbol %r used at %s is not defined here", name, location)

    def _resolve_pending_label_references(self) -> None:
        pending, self._pending_label_references = self._pending_label_references, []
        for name, location in pending:
            label = self.program.global_scope.resolve_label(name)
            if label is not None:
                label.add_reference(location)
            else:
                logger.debug("Label %r referenced at %s is not defined here", name, location)

    # ------------------------------------------------------------------
    # Locations
    # ------------------------------------------------------------------

    def location_from_token(self, token: Token) -> Location:
        return Location(self._document.filename, token.get_span())

    def location_from_current(self) -> Location:
        return self.location_from_token(self.current())

    def location_from_tokens(self, first: Token, last: Token) -> Location:
        return Location(self._document.filename, Span(first.start.clone(), last.end.clone()))

    def span_from(self, start: Position) -> Span:
        """Span from ``start`` to the end of the last consumed non-newline token."""
        end = self._last_significant.end
        if self._last_significant.is_invalid() or end < start:
            end = start
        return Span(start.clone(), end.clone())

    def debug_print_line(self) -> None:
        """Log the token types from the lookahead to the end of the line."""
        it = self._iterator().clone()
        parts: list[str] = []
        while it.has_next() and it.token is not None and it.token.type != TokenType.NEWLINE:
            parts.append(f"  {it.next()}")
        logger.debug("Next line tokens: [\n%s\n]", ",\n".join(parts))


async def parse_document(document: TextDocument) -> Program:
    """Tokenize and parse ``document``; the result carries every diagnostic."""
    parser = DocumentParser(document)
    await parser.initialize()
    return parser.parse()


def parse(source: str, filename: str = "input.rpy") -> Program:
    """Convenience function: parse source text and return a Program."""
    return asyncio.run(parse_document(TextDocument(source, filename)))

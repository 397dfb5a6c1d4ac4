"""Shared test fixtures and helpers."""

from __future__ import annotations

import asyncio

import pytest

from rpyfront.document import Location, TextDocument
from rpyfront.errors import CompileError, DuplicateDefinitionError, ParseError
from rpyfront.lexer import tokenize
from rpyfront.parser import DocumentParser, parse
from rpyfront.program import Program
from rpyfront.tokens import Position, Span, Token, TokenType


@pytest.fixture
def lex():
    """Return a helper that tokenizes source and returns the token list."""

    def _lex(source: str) -> list[Token]:
        return list(tokenize(source))

    return _lex


@pytest.fixture
def parse_source():
    """Return a helper that parses source and returns a Program."""

    def _parse(source: str, filename: str = "test.rpy") -> Program:
        return parse(source, filename)

    return _parse


@pytest.fixture
def make_parser():
    """Return a helper that builds an initialized DocumentParser."""

    def _make(source: str) -> DocumentParser:
        parser = DocumentParser(TextDocument(source, "test.rpy"))
        asyncio.run(parser.initialize())
        return parser

    return _make


def assert_types(tokens: list[Token], expected: list[TokenType]) -> None:
    """Assert that the token types match the expected list."""
    actual = [t.type for t in tokens]
    assert actual == expected, f"Expected {expected}, got {actual}"


def assert_values(tokens: list[Token], source: str, expected: list[str]) -> None:
    """Assert that the token texts match the expected list."""
    doc = TextDocument(source)
    actual = [t.get_value(doc) for t in tokens]
    assert actual == expected, f"Expected {expected}, got {actual}"


def significant(tokens: list[Token]) -> list[Token]:
    """Drop whitespace, newline and comment tokens."""
    skip = {TokenType.WHITESPACE, TokenType.NEWLINE, TokenType.COMMENT}
    return [t for t in tokens if t.type not in skip]


def parse_errors(program: Program) -> list[ParseError]:
    return [e for e in program.error_list if isinstance(e, ParseError)]


def duplicate_errors(program: Program) -> list[DuplicateDefinitionError]:
    return [e for e in program.error_list if isinstance(e, DuplicateDefinitionError)]


def assert_clean(program: Program) -> None:
    """Assert that parsing recorded no diagnostics."""
    messages = [f"{e.error_location}: {e.message}" for e in program.error_list]
    assert program.error_list == [], f"Unexpected errors: {messages}"


def loc(line: int, character: int = 0, length: int = 1, filename: str = "test.rpy") -> Location:
    """Build a single-line Location (offsets are not meaningful)."""
    return Location(
        filename,
        Span(Position(line, character, 0), Position(line, character + length, length)),
    )


def error_lines(errors: list[CompileError]) -> list[int]:
    return [e.error_location.span.start.line for e in errors if e.error_location is not None]

"""Compile errors (accumulated data) and contract-violation exceptions."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from rpyfront.document import Location, TextDocument
    from rpyfront.program import Symbol
    from rpyfront.tokens import Token, TokenType


class PositionOutOfRangeError(IndexError):
    """Raised when a document query falls outside the document."""


class ParserStateError(RuntimeError):
    """Raised when a parser is driven out of order (e.g. initialized twice)."""


class ParseErrorType(Enum):
    UNEXPECTED_TOKEN = auto()
    UNEXPECTED_END_OF_LINE = auto()
    UNEXPECTED_END_OF_FILE = auto()


@dataclass
class CompileError:
    """A diagnostic recorded against a program. Never raised."""

    message: str
    error_location: Location | None

    def format(self, document: TextDocument | None = None) -> str:
        if self.error_location is None:
            return f"error: {self.message}"

        span = self.error_location.span
        filename = self.error_location.filename
        line_idx = span.start.line
        col = span.start.character + 1

        source_line = ""
        if document is not None and 0 <= line_idx < document.line_count:
            source_line = document.lines[line_idx].rstrip("\r")

        # Underline the full span when on one line, otherwise to end of line
        if span.end.line == span.start.line:
            underline_len = max(1, span.end.character - span.start.character)
        else:
            underline_len = max(1, len(source_line) - col + 1)

        pad = " " * (col - 1)
        carets = "^" * underline_len

        line_num = str(line_idx + 1)
        gutter_width = len(line_num) + 1

        blank_gutter = " " * gutter_width + "|"
        line_gutter = f"{line_num:>{gutter_width - 1}} |"

        return (
            f"error: {self.message}\n"
            f"{' ' * gutter_width}--> {filename}:{line_idx + 1}:{col}\n"
            f"{blank_gutter}\n"
            f"{line_gutter} {source_line}\n"
            f"{blank_gutter} {pad}{carets}"
        )


@dataclass
class DuplicateDefinitionError(CompileError):
    """A rejected definition; ``existing_symbol`` is the one that was kept."""

    existing_symbol: Symbol
    duplicate_symbol: Symbol


@dataclass
class ParseError(CompileError):
    error_type: ParseErrorType
    current_token: Token
    next_token: Token
    expected_token_type: TokenType | None = None

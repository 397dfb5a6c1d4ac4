"""Text document model: line/offset queries over line-delimited source."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import PurePath

from rpyfront.errors import PositionOutOfRangeError
from rpyfront.tokens import Position, Span


@dataclass(frozen=True, slots=True)
class TextLine:
    line_number: int
    text: str


@dataclass(frozen=True, slots=True)
class Location:
    """A span inside a named document."""

    filename: str
    span: Span

    def __str__(self) -> str:
        return f"{self.filename}:{self.span.start.line + 1}:{self.span.start.character + 1}"


class TextDocument:
    """In-memory source document with line/offset conversion."""

    def __init__(self, text: str, filename: str = "input.rpy") -> None:
        self.text = text
        self.filename = filename
        self._lines = text.split("\n")

    @property
    def lines(self) -> list[str]:
        return self._lines

    @property
    def line_count(self) -> int:
        return len(self._lines)

    @property
    def uri(self) -> str:
        path = PurePath(self.filename)
        if path.is_absolute():
            return path.as_uri()
        return self.filename

    def get_text(self, span: Span | None = None) -> str:
        if span is None:
            return self.text
        return self.text[self.offset_at(span.start) : self.offset_at(span.end)]

    def line_at(self, line: int) -> TextLine:
        if not 0 <= line < len(self._lines):
            raise PositionOutOfRangeError(
                f"Line {line} is out of range. Document only has {len(self._lines)} lines."
            )
        return TextLine(line, self._lines[line])

    def get_word_range_at_position(self, position: Position) -> Span | None:
        """Return the whitespace-delimited word around ``position``, if any."""
        line = min(len(self._lines) - 1, max(0, position.line))
        line_text = self._lines[line]
        character = min(len(line_text), max(0, position.character))

        start_char = character
        while start_char > 0 and not line_text[start_char - 1].isspace():
            start_char -= 1

        end_char = character
        while end_char < len(line_text) and not line_text[end_char].isspace():
            end_char += 1

        if start_char == end_char:
            return None

        line_offset = self._line_offset(line)
        return Span(
            Position(line, start_char, line_offset + start_char),
            Position(line, end_char, line_offset + end_char),
        )

    def position_at(self, offset: int) -> Position:
        if not 0 <= offset <= len(self.text):
            raise PositionOutOfRangeError(
                f"Offset {offset} is out of bounds. Document length was {len(self.text)}."
            )
        line_start = 0
        for i, line_text in enumerate(self._lines):
            # An offset equal to the line length is the line break itself.
            if line_start + len(line_text) >= offset:
                return Position(i, offset - line_start, offset)
            line_start += len(line_text) + 1
        last = len(self._lines) - 1
        return Position(last, len(self._lines[last]), offset)

    def offset_at(self, position: Position) -> int:
        if not 0 <= position.line < len(self._lines):
            raise PositionOutOfRangeError(
                f"Position {position} is out of range. "
                f"Document only has {len(self._lines)} lines."
            )
        line_text = self._lines[position.line]
        if not 0 <= position.character <= len(line_text):
            raise PositionOutOfRangeError(
                f"Position {position} is out of range. "
                f"Line [{position.line}] only has length {len(line_text)}."
            )
        return self._line_offset(position.line) + position.character

    def _line_offset(self, line: int) -> int:
        return sum(len(text) + 1 for text in self._lines[:line])

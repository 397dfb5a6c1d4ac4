"""Ren'Py script front end: tokenizer, parser and symbol table."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from rpyfront.program import Program

__version__ = "0.1.0"


def parse(source: str, filename: str = "input.rpy") -> Program:
    """Tokenize and parse Ren'Py source; diagnostics are on ``error_list``."""
    from rpyfront.parser import parse as _parse

    return _parse(source, filename)

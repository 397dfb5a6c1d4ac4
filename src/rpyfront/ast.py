"""AST node types for parsed Ren'Py scripts."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from rpyfront.tokens import Span


@dataclass(frozen=True, slots=True)
class Expression:
    """Unparsed expression source with the identifiers it mentions."""

    text: str
    identifiers: tuple[str, ...]
    span: Span


@dataclass(frozen=True, slots=True)
class Block:
    """An indented run of statements."""

    statements: tuple[Statement, ...]
    span: Span


@dataclass(frozen=True, slots=True)
class LabelStatement:
    name: str
    parameters: tuple[str, ...]
    block: Block
    span: Span


@dataclass(frozen=True, slots=True)
class JumpStatement:
    """``jump name`` or ``jump expression e``; exactly one of target/expression is set."""

    target: str | None
    expression: Expression | None
    span: Span


@dataclass(frozen=True, slots=True)
class CallStatement:
    target: str | None
    expression: Expression | None
    arguments: Expression | None
    from_label: str | None
    span: Span
    screen: bool = False


@dataclass(frozen=True, slots=True)
class ReturnStatement:
    value: Expression | None
    span: Span


@dataclass(frozen=True, slots=True)
class PassStatement:
    span: Span


@dataclass(frozen=True, slots=True)
class DefineStatement:
    """``define`` or ``default`` of a store variable."""

    keyword: str
    name: str
    value: Expression | None
    span: Span


@dataclass(frozen=True, slots=True)
class PythonLine:
    """One-line python statement: ``$ code``."""

    code: Expression
    span: Span


@dataclass(frozen=True, slots=True)
class SayStatement:
    who: str | None
    what: str
    span: Span


@dataclass(frozen=True, slots=True)
class ConditionalBranch:
    """One ``if``/``elif``/``else`` arm; ``condition`` is None for ``else``."""

    condition: Expression | None
    block: Block
    span: Span


@dataclass(frozen=True, slots=True)
class IfStatement:
    branches: tuple[ConditionalBranch, ...]
    span: Span


@dataclass(frozen=True, slots=True)
class WhileStatement:
    condition: Expression | None
    block: Block
    span: Span


@dataclass(frozen=True, slots=True)
class MenuChoice:
    caption: str
    condition: Expression | None
    block: Block
    span: Span


@dataclass(frozen=True, slots=True)
class MenuStatement:
    name: str | None
    items: tuple[MenuChoice | SayStatement, ...]
    span: Span


@dataclass(frozen=True, slots=True)
class PythonBlock:
    """``[init [n]] python [early] [hide] [in store]:``; the body is not parsed."""

    priority: int | None
    early: bool
    store: str | None
    span: Span


@dataclass(frozen=True, slots=True)
class InitBlock:
    priority: int | None
    block: Block
    span: Span


@dataclass(frozen=True, slots=True)
class DisplayStatement:
    """scene/show/hide/with/play/stop/queue/pause/voice, and window/nvl."""

    keyword: str
    arguments: Expression | None
    span: Span


@dataclass(frozen=True, slots=True)
class DeclarationStatement:
    """image/screen/transform; any indented body is skipped."""

    keyword: str
    name: str
    span: Span


Statement = Union[
    LabelStatement,
    JumpStatement,
    CallStatement,
    ReturnStatement,
    PassStatement,
    DefineStatement,
    PythonLine,
    SayStatement,
    IfStatement,
    WhileStatement,
    MenuStatement,
    PythonBlock,
    InitBlock,
    DisplayStatement,
    DeclarationStatement,
]

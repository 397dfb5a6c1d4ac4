"""Grammar rules for Ren'Py statements.

Every rule pairs a ``test`` that only inspects the lookahead with a
``parse`` that consumes tokens. Blocks are delimited by the column of the
first token on each line.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import TYPE_CHECKING, Generic, TypeVar

from rpyfront.ast import (
    Block,
    CallStatement,
    ConditionalBranch,
    DeclarationStatement,
    DefineStatement,
    DisplayStatement,
    Expression,
    IfStatement,
    InitBlock,
    JumpStatement,
    LabelStatement,
    MenuChoice,
    MenuStatement,
    PassStatement,
    PythonBlock,
    PythonLine,
    ReturnStatement,
    SayStatement,
    Statement,
    WhileStatement,
)
from rpyfront.document import Location
from rpyfront.errors import ParseErrorType
from rpyfront.tokens import Position, Span, Token, TokenType

if TYPE_CHECKING:
    from rpyfront.parser import DocumentParser
    from rpyfront.program import Scope

T = TypeVar("T")


class GrammarRule(ABC, Generic[T]):
    """A parser grammar element: non-consuming test, consuming parse."""

    @abstractmethod
    def test(self, parser: DocumentParser) -> bool: ...

    @abstractmethod
    def parse(self, parser: DocumentParser) -> T | None: ...


class KeywordRule(GrammarRule[T]):
    """A rule selected by the keyword that starts it."""

    keywords: tuple[TokenType, ...] = ()

    def test(self, parser: DocumentParser) -> bool:
        return any(parser.test(kw) for kw in self.keywords)


# ----------------------------------------------------------------------
# Shared helpers
# ----------------------------------------------------------------------

_OPENERS = frozenset({TokenType.OPEN_PAREN, TokenType.OPEN_BRACKET, TokenType.OPEN_BRACE})
_CLOSERS = frozenset({TokenType.CLOSE_PAREN, TokenType.CLOSE_BRACKET, TokenType.CLOSE_BRACE})
_STOP_COLON = frozenset({TokenType.COLON})


def _identifier_chains(tokens: Sequence[Token]) -> list[tuple[Token, Token]]:
    """Group adjacent ``a.b.c`` identifier runs into (first, last) token pairs.

    A run that follows a period (attribute access on a call result or
    literal) is not a name lookup and is left out.
    """
    chains: list[tuple[Token, Token]] = []
    first: Token | None = None
    last: Token | None = None
    prev: Token | None = None

    def adjacent(a: Token, b: Token) -> bool:
        return a.end.offset == b.start.offset

    for tok in tokens:
        if tok.type == TokenType.IDENTIFIER:
            if (
                first is not None
                and last is not None
                and prev is not None
                and prev.type == TokenType.PERIOD
                and adjacent(last, prev)
                and adjacent(prev, tok)
            ):
                last = tok
            else:
                if first is not None and last is not None:
                    chains.append((first, last))
                if prev is not None and prev.type == TokenType.PERIOD and adjacent(prev, tok):
                    first = last = None
                else:
                    first = last = tok
        elif tok.type != TokenType.PERIOD or last is None or prev is not last:
            if first is not None and last is not None:
                chains.append((first, last))
            first = last = None
        prev = tok

    if first is not None and last is not None:
        chains.append((first, last))
    return chains


def _record_references(parser: DocumentParser, tokens: Sequence[Token]) -> tuple[str, ...]:
    names: list[str] = []
    doc = parser.document
    for first, last in _identifier_chains(tokens):
        name = doc.text[first.start.offset : last.end.offset]
        names.append(name)
        parser.reference_symbol(name, parser.location_from_tokens(first, last))
    return tuple(names)


def parse_expression(
    parser: DocumentParser, stop: frozenset[TokenType] = frozenset()
) -> Expression | None:
    """Consume tokens up to the end of the line or a top-level ``stop`` token."""
    tokens: list[Token] = []
    depth = 0
    while not parser.at_eol():
        tok = parser.peek_next()
        in_string = tok.has_meta_token(TokenType.STRING_LITERAL)
        if depth == 0 and not in_string and tok.type in stop:
            break
        if not in_string:
            if tok.type in _OPENERS:
                depth += 1
            elif tok.type in _CLOSERS:
                depth = max(0, depth - 1)
        parser.next()
        tokens.append(parser.current())

    if not tokens:
        return None
    identifiers = _record_references(parser, tokens)
    start, end = tokens[0].start, tokens[-1].end
    text = parser.document.text[start.offset : end.offset]
    return Expression(text, identifiers, Span(start.clone(), end.clone()))


def require_expression(
    parser: DocumentParser, stop: frozenset[TokenType] = frozenset()
) -> Expression | None:
    """Like :func:`parse_expression`, but an empty expression is an error."""
    expression = parse_expression(parser, stop)
    if expression is None:
        parser.add_error(ParseErrorType.UNEXPECTED_TOKEN, TokenType.IDENTIFIER)
    return expression


def parse_string_literal(parser: DocumentParser) -> str | None:
    """Consume one string literal and return its body text."""
    if not parser.require_token(TokenType.STRING_LITERAL):
        return None
    begin = parser.current()
    inner: list[Token] = []
    closing: Token | None = None
    while parser.has_next() and parser.test(TokenType.STRING_LITERAL):
        parser.next()
        tok = parser.current()
        if tok.type == begin.type:
            closing = tok
            break
        inner.append(tok)

    _record_references(parser, [t for t in inner if t.has_meta_token(TokenType.INTERPOLATION)])
    end_offset = closing.start.offset if closing is not None else parser.current().end.offset
    return parser.document.text[begin.end.offset : end_offset]


def parse_dotted_name(parser: DocumentParser) -> tuple[str, Location] | None:
    """Parse ``name(.name)*`` and return the joined name and its location."""
    if not parser.require_token(TokenType.IDENTIFIER):
        return None
    first = parser.current()
    while parser.test(TokenType.PERIOD) and parser.peek(1).type == TokenType.IDENTIFIER:
        parser.next()
        parser.next()
    last = parser.current()
    name = parser.document.text[first.start.offset : last.end.offset]
    return name, parser.location_from_tokens(first, last)


def parse_label_name(parser: DocumentParser) -> tuple[str, Location] | None:
    """Parse a label name; ``.local`` names are qualified by the enclosing label."""
    if parser.test(TokenType.PERIOD):
        parser.next()
        dot = parser.current()
        if not parser.require_token(TokenType.IDENTIFIER):
            return None
        local = parser.current_value()
        location = parser.location_from_tokens(dot, parser.current())
        enclosing = parser.current_scope.enclosing_label()
        if enclosing is None:
            return local, location
        return f"{enclosing.identifier.split('.')[0]}.{local}", location
    return parse_dotted_name(parser)


def parse_block_header(parser: DocumentParser) -> bool:
    """Consume the ``:`` that opens a block and the rest of its line."""
    ok = parser.require_token(TokenType.COLON)
    parser.expect_eol()
    return ok


def parse_block(
    parser: DocumentParser,
    parent_indent: int,
    rules: Sequence[GrammarRule[Statement]] | None = None,
) -> Block:
    """Parse the statements indented deeper than ``parent_indent``.

    The caller owns the scope the statements are parsed into.
    """
    parser.skip_empty_lines()
    start = parser.peek_next().start.clone()
    if not parser.has_next() or parser.column() <= parent_indent:
        return Block((), Span(start, start.clone()))
    statements = parse_statements(parser, parser.column(), rules)
    return Block(tuple(statements), parser.span_from(start))


def skip_block(parser: DocumentParser, parent_indent: int) -> None:
    """Skip every line indented deeper than ``parent_indent``."""
    while True:
        parser.skip_empty_lines()
        if not parser.has_next() or parser.column() <= parent_indent:
            return
        parser.skip_to_eol()


def parse_statements(
    parser: DocumentParser,
    indent: int,
    rules: Sequence[GrammarRule[Statement]] | None = None,
) -> list[Statement]:
    """Parse consecutive statements starting at column ``indent``."""
    if rules is None:
        rules = STATEMENT_RULES
    statements: list[Statement] = []
    while True:
        parser.skip_empty_lines()
        if not parser.has_next():
            break
        column = parser.column()
        if column < indent:
            break
        if column > indent:
            # Unexpected indentation: report the line, skip it and its children.
            parser.add_error(ParseErrorType.UNEXPECTED_TOKEN)
            parser.skip_to_eol()
            skip_block(parser, column)
            continue

        statement = parser.any_of(rules)
        if statement is None:
            parser.skip_to_eol()
        else:
            statements.append(statement)
    return statements


def parse_program(parser: DocumentParser) -> list[Statement]:
    return parse_statements(parser, 0)


# ----------------------------------------------------------------------
# Statements
# ----------------------------------------------------------------------


class LabelRule(KeywordRule[LabelStatement]):
    keywords = (TokenType.LABEL,)

    def parse(self, parser: DocumentParser) -> LabelStatement | None:
        start = parser.peek_next().start.clone()
        indent = start.character
        parser.next()

        named = parse_label_name(parser)
        if named is None:
            parser.skip_to_eol()
            return None
        name, location = named

        global_scope = parser.program.global_scope
        label = global_scope.define_label(name, location) or global_scope.resolve_label(name)

        with parser.scope(parent_label=label) as scope:
            parameters: tuple[str, ...] = ()
            if parser.test(TokenType.OPEN_PAREN):
                parameters = _parse_parameters(parser, scope)
            parse_block_header(parser)
            block = parse_block(parser, indent)

        return LabelStatement(name, parameters, block, parser.span_from(start))


def _parse_parameters(parser: DocumentParser, scope: Scope) -> tuple[str, ...]:
    """Parse ``(a, b=expr, *args)`` and define each name in ``scope``."""
    parser.next()  # consume OPEN_PAREN
    names: list[str] = []
    expect_name = True
    depth = 1
    defaults: list[Token] = []
    while not parser.at_eol():
        tok = parser.peek_next()
        if tok.type in _OPENERS:
            depth += 1
        elif tok.type in _CLOSERS:
            depth -= 1
            if depth == 0:
                parser.next()
                break
        parser.next()
        if depth == 1 and tok.type == TokenType.COMMA:
            expect_name = True
        elif depth == 1 and expect_name and tok.type == TokenType.IDENTIFIER:
            names.append(parser.current_value())
            scope.define_symbol(names[-1], parser.location_from_current(), no_shadow=False)
            expect_name = False
        elif tok.type not in (TokenType.MULTIPLY, TokenType.ASSIGN):
            defaults.append(tok)
            expect_name = False
    _record_references(parser, defaults)
    return tuple(names)


class JumpRule(KeywordRule[JumpStatement]):
    keywords = (TokenType.JUMP,)

    def parse(self, parser: DocumentParser) -> JumpStatement | None:
        start = parser.peek_next().start.clone()
        parser.next()

        if parser.optional_token(TokenType.EXPRESSION):
            expression = parse_expression(parser)
            parser.expect_eol()
            return JumpStatement(None, expression, parser.span_from(start))

        named = parse_label_name(parser)
        if named is None:
            parser.skip_to_eol()
            return None
        name, location = named
        parser.reference_label(name, location)
        parser.expect_eol()
        return JumpStatement(name, None, parser.span_from(start))


class CallRule(KeywordRule[CallStatement]):
    keywords = (TokenType.CALL,)

    def parse(self, parser: DocumentParser) -> CallStatement | None:
        start = parser.peek_next().start.clone()
        parser.next()

        if parser.optional_token(TokenType.SCREEN):
            return self._parse_screen_call(parser, start)

        target: str | None = None
        expression: Expression | None = None
        if parser.optional_token(TokenType.EXPRESSION):
            expression = parse_expression(parser, frozenset({TokenType.FROM}))
        else:
            named = parse_label_name(parser)
            if named is None:
                parser.skip_to_eol()
                return None
            target, location = named
            parser.reference_label(target, location)

        arguments = None
        if parser.test(TokenType.OPEN_PAREN):
            arguments = parse_expression(parser, frozenset({TokenType.FROM}))

        from_label: str | None = None
        if parser.optional_token(TokenType.FROM):
            named = parse_label_name(parser)
            if named is not None:
                from_label, location = named
                parser.program.global_scope.define_label(from_label, location)

        parser.expect_eol()
        return CallStatement(target, expression, arguments, from_label, parser.span_from(start))

    @staticmethod
    def _parse_screen_call(parser: DocumentParser, start: Position) -> CallStatement | None:
        """``call screen name[(args)] [clauses]``; screen names are not labels."""
        named = parse_dotted_name(parser)
        if named is None:
            parser.skip_to_eol()
            return None
        arguments = parse_expression(parser)
        parser.expect_eol()
        return CallStatement(named[0], None, arguments, None, parser.span_from(start), screen=True)


class ReturnRule(KeywordRule[ReturnStatement]):
    keywords = (TokenType.RETURN,)

    def parse(self, parser: DocumentParser) -> ReturnStatement:
        start = parser.peek_next().start.clone()
        parser.next()
        value = parse_expression(parser)
        parser.expect_eol()
        return ReturnStatement(value, parser.span_from(start))


class PassRule(KeywordRule[PassStatement]):
    keywords = (TokenType.PASS,)

    def parse(self, parser: DocumentParser) -> PassStatement:
        start = parser.peek_next().start.clone()
        parser.next()
        span = parser.span_from(start)
        parser.expect_eol()
        return PassStatement(span)


class DefineRule(KeywordRule[DefineStatement]):
    """``define`` and ``default``; both create a global store symbol."""

    keywords = (TokenType.DEFINE, TokenType.DEFAULT)

    def parse(self, parser: DocumentParser) -> DefineStatement | None:
        start = parser.peek_next().start.clone()
        parser.next()
        keyword = parser.current_value()

        # Optional init priority: define -2 x = ...
        parser.optional_token(TokenType.MINUS)
        parser.optional_token(TokenType.INTEGER)

        named = parse_dotted_name(parser)
        if named is None:
            parser.skip_to_eol()
            return None
        name, location = named

        value = None
        if parser.any_of_token((TokenType.ASSIGN, TokenType.PLUS_ASSIGN)):
            value = require_expression(parser)

        parser.program.global_scope.define_symbol(name, location, no_shadow=True)
        parser.expect_eol()
        return DefineStatement(keyword, name, value, parser.span_from(start))


class PythonLineRule(KeywordRule[PythonLine]):
    keywords = (TokenType.DOLLAR,)

    def parse(self, parser: DocumentParser) -> PythonLine | None:
        start = parser.peek_next().start.clone()
        parser.next()
        code = require_expression(parser)
        parser.expect_eol()
        if code is None:
            return None
        return PythonLine(code, parser.span_from(start))


def _parse_python_block(
    parser: DocumentParser, start, indent: int, priority: int | None
) -> PythonBlock:
    parser.next()  # consume PYTHON
    early = parser.optional_token(TokenType.EARLY)
    parser.optional_token(TokenType.HIDE)
    store = None
    if parser.optional_token(TokenType.IN):
        named = parse_dotted_name(parser)
        if named is not None:
            store = named[0]
    parse_block_header(parser)
    span = parser.span_from(start)
    skip_block(parser, indent)
    return PythonBlock(priority, early, store, span)


class PythonBlockRule(KeywordRule[PythonBlock]):
    keywords = (TokenType.PYTHON,)

    def parse(self, parser: DocumentParser) -> PythonBlock:
        start = parser.peek_next().start.clone()
        return _parse_python_block(parser, start, start.character, None)


class InitRule(KeywordRule[Statement]):
    keywords = (TokenType.INIT,)

    def parse(self, parser: DocumentParser) -> Statement | None:
        start = parser.peek_next().start.clone()
        indent = start.character
        parser.next()

        priority: int | None = None
        negative = parser.optional_token(TokenType.MINUS)
        if parser.optional_token(TokenType.INTEGER):
            priority = int(parser.current_value()) * (-1 if negative else 1)

        if parser.test(TokenType.PYTHON):
            return _parse_python_block(parser, start, indent, priority)

        if not parser.test(TokenType.COLON):
            parser.expect_eol()
            return None

        parse_block_header(parser)
        with parser.scope():
            block = parse_block(parser, indent)
        return InitBlock(priority, block, parser.span_from(start))


class IfRule(KeywordRule[IfStatement]):
    keywords = (TokenType.IF,)

    def parse(self, parser: DocumentParser) -> IfStatement:
        start = parser.peek_next().start.clone()
        indent = start.character
        branches = [self._parse_branch(parser, indent, with_condition=True)]

        while parser.has_next() and parser.column() == indent:
            if parser.test(TokenType.ELIF):
                branches.append(self._parse_branch(parser, indent, with_condition=True))
            elif parser.test(TokenType.ELSE):
                branches.append(self._parse_branch(parser, indent, with_condition=False))
                break
            else:
                break

        return IfStatement(tuple(branches), parser.span_from(start))

    @staticmethod
    def _parse_branch(
        parser: DocumentParser, indent: int, with_condition: bool
    ) -> ConditionalBranch:
        start = parser.peek_next().start.clone()
        parser.next()  # consume IF / ELIF / ELSE
        condition = require_expression(parser, _STOP_COLON) if with_condition else None
        parse_block_header(parser)
        with parser.scope():
            block = parse_block(parser, indent)
        return ConditionalBranch(condition, block, parser.span_from(start))


class WhileRule(KeywordRule[WhileStatement]):
    keywords = (TokenType.WHILE,)

    def parse(self, parser: DocumentParser) -> WhileStatement:
        start = parser.peek_next().start.clone()
        indent = start.character
        parser.next()
        condition = require_expression(parser, _STOP_COLON)
        parse_block_header(parser)
        with parser.scope():
            block = parse_block(parser, indent)
        return WhileStatement(condition, block, parser.span_from(start))


class SayRule(GrammarRule[SayStatement]):
    """``"what"``, ``who "what"``, ``who attr... "what"`` or ``"who" "what"``."""

    def test(self, parser: DocumentParser) -> bool:
        if parser.test(TokenType.STRING_LITERAL):
            return True
        if not parser.test(TokenType.IDENTIFIER):
            return False
        offset = 1
        while parser.peek(offset).type == TokenType.IDENTIFIER:
            offset += 1
        return parser.peek(offset).has_meta_token(TokenType.STRING_LITERAL)

    def parse(self, parser: DocumentParser) -> SayStatement | None:
        start = parser.peek_next().start.clone()
        who: str | None = None

        if parser.test(TokenType.IDENTIFIER):
            parser.next()
            who = parser.current_value()
            parser.reference_symbol(who, parser.location_from_current())
            while parser.optional_token(TokenType.IDENTIFIER):
                pass  # image attributes

        what = parse_string_literal(parser)
        if what is None:
            parser.skip_to_eol()
            return None
        if who is None and parser.test(TokenType.STRING_LITERAL):
            who, what = what, parse_string_literal(parser) or ""

        # Trailing clauses (with, id, arguments) are not modelled.
        parse_expression(parser)
        parser.expect_eol()
        return SayStatement(who, what, parser.span_from(start))


class MenuItemRule(GrammarRule[Statement]):
    """A menu caption: a choice when followed by ``[if cond]:``, else narration."""

    def test(self, parser: DocumentParser) -> bool:
        return parser.test(TokenType.STRING_LITERAL)

    def parse(self, parser: DocumentParser) -> Statement | None:
        start = parser.peek_next().start.clone()
        indent = start.character
        caption = parse_string_literal(parser)
        if caption is None:
            return None

        condition = None
        if parser.optional_token(TokenType.IF):
            condition = require_expression(parser, _STOP_COLON)

        if condition is None and not parser.test(TokenType.COLON):
            who, what = None, caption
            if parser.test(TokenType.STRING_LITERAL):
                who, what = caption, parse_string_literal(parser) or ""
            parser.expect_eol()
            return SayStatement(who, what, parser.span_from(start))

        parse_block_header(parser)
        with parser.scope():
            block = parse_block(parser, indent)
        return MenuChoice(caption, condition, block, parser.span_from(start))


class MenuRule(KeywordRule[MenuStatement]):
    keywords = (TokenType.MENU,)

    def parse(self, parser: DocumentParser) -> MenuStatement:
        start = parser.peek_next().start.clone()
        indent = start.character
        parser.next()

        name = None
        if parser.test(TokenType.IDENTIFIER):
            named = parse_dotted_name(parser)
            if named is not None:
                name, location = named
                parser.program.global_scope.define_label(name, location)

        parse_block_header(parser)
        with parser.scope():
            block = parse_block(parser, indent, MENU_ITEM_RULES)
        return MenuStatement(name, block.statements, parser.span_from(start))


class DisplayRule(KeywordRule[DisplayStatement]):
    keywords = (
        TokenType.SCENE,
        TokenType.SHOW,
        TokenType.HIDE,
        TokenType.WITH,
        TokenType.PLAY,
        TokenType.STOP,
        TokenType.QUEUE,
        TokenType.PAUSE,
        TokenType.VOICE,
    )

    def parse(self, parser: DocumentParser) -> DisplayStatement:
        start = parser.peek_next().start.clone()
        parser.next()
        keyword = parser.current_value()
        arguments = parse_expression(parser)
        parser.expect_eol()
        return DisplayStatement(keyword, arguments, parser.span_from(start))


class WindowRule(DisplayRule):
    """``window show|hide|auto`` and ``nvl clear|show|hide``.

    Both words are ordinary names, so ``nvl "text"`` stays a say line.
    """

    words = ("window", "nvl")
    _actions = frozenset({TokenType.SHOW, TokenType.HIDE, TokenType.IDENTIFIER})

    def test(self, parser: DocumentParser) -> bool:
        if not parser.test(TokenType.IDENTIFIER):
            return False
        if not any(parser.test_value(word) for word in self.words):
            return False
        return parser.peek(1).type in self._actions and not parser.peek(2).has_meta_token(
            TokenType.STRING_LITERAL
        )


class DeclarationRule(KeywordRule[DeclarationStatement]):
    """image/screen/transform; bodies are skipped."""

    keywords = (TokenType.IMAGE, TokenType.SCREEN, TokenType.TRANSFORM)

    def parse(self, parser: DocumentParser) -> DeclarationStatement | None:
        start = parser.peek_next().start.clone()
        indent = start.character
        parser.next()
        keyword = parser.current_value()

        if not parser.require_token(TokenType.IDENTIFIER):
            parser.skip_to_eol()
            return None
        words = [parser.current_value()]
        while parser.optional_token(TokenType.IDENTIFIER):
            words.append(parser.current_value())
        name = " ".join(words)

        if parser.optional_token(TokenType.ASSIGN):
            parse_expression(parser)
        elif parser.test(TokenType.OPEN_PAREN):
            parse_expression(parser, _STOP_COLON)

        span = parser.span_from(start)
        if parser.test(TokenType.COLON):
            parse_block_header(parser)
            skip_block(parser, indent)
        else:
            parser.expect_eol()
        return DeclarationStatement(keyword, name, span)


STATEMENT_RULES: tuple[GrammarRule[Statement], ...] = (
    LabelRule(),
    JumpRule(),
    CallRule(),
    ReturnRule(),
    PassRule(),
    DefineRule(),
    PythonLineRule(),
    InitRule(),
    PythonBlockRule(),
    IfRule(),
    WhileRule(),
    MenuRule(),
    DisplayRule(),
    DeclarationRule(),
    WindowRule(),
    SayRule(),
)

MENU_ITEM_RULES: tuple[GrammarRule[Statement], ...] = (MenuItemRule(), SayRule())

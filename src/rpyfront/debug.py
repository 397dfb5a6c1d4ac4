"""Token, AST and scope dumps for --tokens / --ast / --symbols."""

from __future__ import annotations

import sys
from typing import TextIO

from rpyfront.ast import (
    Block,
    CallStatement,
    ConditionalBranch,
    DeclarationStatement,
    DefineStatement,
    DisplayStatement,
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
from rpyfront.document import TextDocument
from rpyfront.program import Program, Scope
from rpyfront.tokens import TokenList


def dump_tokens(tokens: TokenList, document: TextDocument, *, file: TextIO = sys.stdout) -> None:
    """Print one line per token: position, type, meta types and text."""
    for tok in tokens:
        meta = ",".join(sorted(m.name for m in tok.meta_types))
        suffix = f" [{meta}]" if meta else ""
        file.write(f"{tok.start} {tok.type.name}{suffix} {tok.get_value(document)!r}\n")


def dump_ast(program: Program, *, file: TextIO = sys.stdout) -> None:
    """Print a human-readable statement tree to *file*."""
    file.write("Program\n")
    for statement in program.statements:
        _dump_statement(statement, 1, file)


def dump_scopes(program: Program, *, file: TextIO = sys.stdout) -> None:
    """Print the scope tree with every symbol, label and reference count."""
    _dump_scope(program, program.global_scope, 0, file)


def _indent(depth: int) -> str:
    return "  " * depth


def _dump_block(block: Block, depth: int, f: TextIO) -> None:
    for statement in block.statements:
        _dump_statement(statement, depth, f)


def _dump_statement(node: Statement, depth: int, f: TextIO) -> None:
    pad = _indent(depth)
    if isinstance(node, LabelStatement):
        params = f"({', '.join(node.parameters)})" if node.parameters else ""
        f.write(f"{pad}Label {node.name}{params}\n")
        _dump_block(node.block, depth + 1, f)
    elif isinstance(node, JumpStatement):
        target = node.target if node.expression is None else f"expression {node.expression.text}"
        f.write(f"{pad}Jump {target}\n")
    elif isinstance(node, CallStatement):
        target = node.target if node.expression is None else f"expression {node.expression.text}"
        if node.screen:
            target = f"screen {target}"
        extra = f" from {node.from_label}" if node.from_label else ""
        f.write(f"{pad}Call {target}{extra}\n")
    elif isinstance(node, ReturnStatement):
        f.write(f"{pad}Return{' ' + node.value.text if node.value else ''}\n")
    elif isinstance(node, PassStatement):
        f.write(f"{pad}Pass\n")
    elif isinstance(node, DefineStatement):
        value = node.value.text if node.value else ""
        f.write(f"{pad}{node.keyword.capitalize()} {node.name} = {value}\n")
    elif isinstance(node, PythonLine):
        f.write(f"{pad}Python {node.code.text!r}\n")
    elif isinstance(node, SayStatement):
        f.write(f"{pad}Say {node.who or '-'} {node.what!r}\n")
    elif isinstance(node, IfStatement):
        f.write(f"{pad}If\n")
        for branch in node.branches:
            _dump_branch(branch, depth + 1, f)
    elif isinstance(node, WhileStatement):
        f.write(f"{pad}While {node.condition.text if node.condition else ''}\n")
        _dump_block(node.block, depth + 1, f)
    elif isinstance(node, MenuStatement):
        f.write(f"{pad}Menu{' ' + node.name if node.name else ''}\n")
        for item in node.items:
            if isinstance(item, MenuChoice):
                cond = f" if {item.condition.text}" if item.condition else ""
                f.write(f"{_indent(depth + 1)}Choice {item.caption!r}{cond}\n")
                _dump_block(item.block, depth + 2, f)
            else:
                _dump_statement(item, depth + 1, f)
    elif isinstance(node, PythonBlock):
        f.write(f"{pad}PythonBlock{'' if node.priority is None else ' ' + str(node.priority)}\n")
    elif isinstance(node, InitBlock):
        f.write(f"{pad}Init{'' if node.priority is None else ' ' + str(node.priority)}\n")
        _dump_block(node.block, depth + 1, f)
    elif isinstance(node, DisplayStatement):
        args = f" {node.arguments.text}" if node.arguments else ""
        f.write(f"{pad}{node.keyword.capitalize()}{args}\n")
    elif isinstance(node, DeclarationStatement):
        f.write(f"{pad}{node.keyword.capitalize()} {node.name}\n")


def _dump_branch(branch: ConditionalBranch, depth: int, f: TextIO) -> None:
    if branch.condition is None:
        f.write(f"{_indent(depth)}Else\n")
    else:
        f.write(f"{_indent(depth)}Branch {branch.condition.text}\n")
    _dump_block(branch.block, depth + 1, f)


def _dump_scope(program: Program, scope: Scope, depth: int, f: TextIO) -> None:
    title = "Scope" if scope.parent_label is None else f"Scope (label {scope.parent_label.identifier})"
    f.write(f"{_indent(depth)}{title}\n")
    for name, symbol in scope.symbols.items():
        f.write(
            f"{_indent(depth + 1)}symbol {name} @ {symbol.definition_location}"
            f" refs={len(symbol.references)}\n"
        )
    for name, label in scope.labels.items():
        f.write(
            f"{_indent(depth + 1)}label {name} @ {label.definition_location}"
            f" refs={len(label.references)}\n"
        )
    for child in program.children_of(scope):
        _dump_scope(program, child, depth + 1, f)

"""Symbols, lexical scopes, and the program aggregate built by the parser."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from rpyfront.errors import CompileError, DuplicateDefinitionError

if TYPE_CHECKING:
    from rpyfront.ast import Statement
    from rpyfront.document import Location, TextDocument


@dataclass(eq=False)
class Symbol:
    """A named definition and every location that refers to it."""

    definition_location: Location
    identifier: str
    references: list[Location] = field(default_factory=list)

    def add_reference(self, reference: Location) -> None:
        self.references.append(reference)


class Scope:
    """A lexical scope with two namespaces: symbols and labels.

    Scopes are created through :meth:`Program.create_scope`; the program owns
    them and ``parent`` is only a back-link.
    """

    def __init__(
        self,
        program: Program,
        parent: Scope | None = None,
        parent_label: Symbol | None = None,
    ) -> None:
        self.program = program
        self.parent = parent
        self.parent_label = parent_label
        self.symbols: dict[str, Symbol] = {}
        self.labels: dict[str, Symbol] = {}

    def define_symbol(
        self, identifier: str, definition_location: Location, no_shadow: bool = True
    ) -> Symbol | None:
        """Define a symbol in this scope.

        Records a DuplicateDefinitionError and returns None when the
        identifier already exists here, or, with ``no_shadow``, when it
        resolves through an enclosing scope. The first definition is kept.
        """
        symbol = Symbol(definition_location, identifier)

        existing = self.symbols.get(identifier)
        if existing is not None:
            self._report_duplicate(
                f'A symbol with the identifier "{identifier}" has already been defined.',
                existing,
                symbol,
            )
            return None

        if no_shadow:
            shadowed = self.resolve(identifier)
            if shadowed is not None:
                self._report_duplicate(
                    f'A symbol with the identifier "{identifier}" has already been defined '
                    "in this scope.",
                    shadowed,
                    symbol,
                )
                return None

        self.symbols[identifier] = symbol
        return symbol

    def resolve(self, identifier: str) -> Symbol | None:
        """Find ``identifier`` here or in the nearest enclosing scope."""
        symbol = self.symbols.get(identifier)
        if symbol is not None:
            return symbol
        if self.parent is not None:
            return self.parent.resolve(identifier)
        return None

    def define_label(
        self, identifier: str, definition_location: Location, no_shadow: bool = True
    ) -> Symbol | None:
        """Define a label in this scope, with the same duplicate rules as symbols."""
        label = Symbol(definition_location, identifier)

        existing = self.labels.get(identifier)
        if existing is not None:
            self._report_duplicate(
                f'A label with the identifier "{identifier}" has already been defined.',
                existing,
                label,
            )
            return None

        if no_shadow:
            shadowed = self.resolve_label(identifier)
            if shadowed is not None:
                self._report_duplicate(
                    f'A label with the identifier "{identifier}" has already been defined '
                    "in this scope.",
                    shadowed,
                    label,
                )
                return None

        self.labels[identifier] = label
        return label

    def resolve_label(self, identifier: str) -> Symbol | None:
        """Find a label in this scope, falling back to the *symbols* of the parents.

        Labels are only visible in the scope that defines them; enclosing
        scopes contribute their ordinary symbols, not their labels.
        """
        label = self.labels.get(identifier)
        if label is not None:
            return label
        if self.parent is not None:
            return self.parent.resolve(identifier)
        return None

    def enclosing_label(self) -> Symbol | None:
        """Return the nearest ``parent_label`` up the scope chain."""
        scope: Scope | None = self
        while scope is not None:
            if scope.parent_label is not None:
                return scope.parent_label
            scope = scope.parent
        return None

    def _report_duplicate(self, message: str, existing: Symbol, duplicate: Symbol) -> None:
        self.program.error_list.append(
            DuplicateDefinitionError(
                message=message,
                error_location=duplicate.definition_location,
                existing_symbol=existing,
                duplicate_symbol=duplicate,
            )
        )


class Program:
    """Result of parsing one document: scopes, statements, and diagnostics."""

    def __init__(self, document: TextDocument | None = None) -> None:
        self.document = document
        self.error_list: list[CompileError] = []
        self.statements: list[Statement] = []
        self.global_scope = Scope(self)
        self.scopes: list[Scope] = [self.global_scope]

    def create_scope(self, parent: Scope, parent_label: Symbol | None = None) -> Scope:
        scope = Scope(self, parent, parent_label)
        self.scopes.append(scope)
        return scope

    def children_of(self, scope: Scope) -> list[Scope]:
        return [s for s in self.scopes if s.parent is scope]

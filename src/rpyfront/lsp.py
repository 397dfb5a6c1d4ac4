"""Minimal LSP server for Ren'Py scripts: diagnostics only."""

from __future__ import annotations

import logging

from lsprotocol.types import (
    TEXT_DOCUMENT_DID_CHANGE,
    TEXT_DOCUMENT_DID_OPEN,
    Diagnostic,
    DiagnosticRelatedInformation,
    DiagnosticSeverity,
    DidChangeTextDocumentParams,
    DidOpenTextDocumentParams,
    Location,
    Position,
    PublishDiagnosticsParams,
    Range,
    TextDocumentSyncKind,
)
from pygls.lsp.server import LanguageServer

from rpyfront import __version__
from rpyfront.document import Location as SourceLocation
from rpyfront.document import TextDocument
from rpyfront.errors import CompileError, DuplicateDefinitionError
from rpyfront.parser import parse_document

logger = logging.getLogger(__name__)

server = LanguageServer(
    "rpyfront-lsp", __version__, text_document_sync_kind=TextDocumentSyncKind.Full
)


def _range(location: SourceLocation | None) -> Range:
    if location is None:
        return Range(start=Position(line=0, character=0), end=Position(line=0, character=0))
    span = location.span
    return Range(
        start=Position(line=span.start.line, character=span.start.character),
        end=Position(line=span.end.line, character=span.end.character),
    )


def to_diagnostic(error: CompileError, uri: str) -> Diagnostic:
    """Convert a recorded compile error into an LSP diagnostic."""
    related = None
    if isinstance(error, DuplicateDefinitionError):
        first = error.existing_symbol
        related = [
            DiagnosticRelatedInformation(
                location=Location(uri=uri, range=_range(first.definition_location)),
                message=f'"{first.identifier}" is first defined here',
            )
        ]
    return Diagnostic(
        range=_range(error.error_location),
        message=error.message,
        severity=DiagnosticSeverity.Error,
        source="rpyfront",
        related_information=related,
    )


async def _validate(ls: LanguageServer, uri: str) -> None:
    """Parse the document and publish its diagnostics."""
    doc = ls.workspace.get_text_document(uri)
    filename = uri.rsplit("/", 1)[-1] if "/" in uri else uri

    program = await parse_document(TextDocument(doc.source, filename))
    diagnostics = [to_diagnostic(error, uri) for error in program.error_list]
    logger.debug("Publishing %d diagnostic(s) for %s", len(diagnostics), uri)

    ls.text_document_publish_diagnostics(
        PublishDiagnosticsParams(uri=uri, diagnostics=diagnostics)
    )


@server.feature(TEXT_DOCUMENT_DID_OPEN)
async def did_open(ls: LanguageServer, params: DidOpenTextDocumentParams) -> None:
    await _validate(ls, params.text_document.uri)


@server.feature(TEXT_DOCUMENT_DID_CHANGE)
async def did_change(ls: LanguageServer, params: DidChangeTextDocumentParams) -> None:
    await _validate(ls, params.text_document.uri)


def main() -> None:
    server.start_io()

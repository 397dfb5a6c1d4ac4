"""Tests for the parser core: navigation, token primitives, errors, scopes."""

from __future__ import annotations

import asyncio
import logging

import pytest

from rpyfront.document import TextDocument
from rpyfront.errors import ParseErrorType, ParserStateError
from rpyfront.parser import INVALID_TOKEN, DocumentParser, parse, parse_document
from rpyfront.rules import GrammarRule
from rpyfront.tokens import TokenType


class NeverRule(GrammarRule[str]):
    def test(self, parser):
        return False

    def parse(self, parser):
        raise AssertionError("parse() called on a rule whose test failed")


class PassWordRule(GrammarRule[str]):
    def test(self, parser):
        return parser.test(TokenType.PASS)

    def parse(self, parser):
        parser.next()
        return parser.current_value()


class TestInitialize:
    def test_lookahead_on_first_token(self, make_parser):
        parser = make_parser("label start:")
        assert parser.current() is INVALID_TOKEN
        assert parser.peek_next().type == TokenType.LABEL

    def test_comments_and_whitespace_are_filtered(self, make_parser):
        parser = make_parser("  # note\npass")
        assert parser.peek_next().type == TokenType.NEWLINE
        parser.next()
        assert parser.peek_next().type == TokenType.PASS

    def test_twice_raises(self, make_parser):
        parser = make_parser("pass")
        with pytest.raises(ParserStateError):
            asyncio.run(parser.initialize())

    def test_use_before_initialize_raises(self):
        parser = DocumentParser(TextDocument("pass"))
        with pytest.raises(ParserStateError):
            parser.parse()

    def test_empty_document(self, make_parser):
        parser = make_parser("")
        assert not parser.has_next()
        assert parser.peek_next().is_invalid()


class TestNavigation:
    def test_next_moves_lookahead_to_current(self, make_parser):
        parser = make_parser("label start")
        parser.next()
        assert parser.current().type == TokenType.LABEL
        assert parser.current_value() == "label"
        assert parser.peek_next().type == TokenType.IDENTIFIER

    def test_next_past_end_records_eof(self, make_parser):
        parser = make_parser("pass")
        parser.next()
        parser.next()
        assert parser.current().type == TokenType.PASS
        assert len(parser.errors) == 1
        assert parser.errors[0].error_type == ParseErrorType.UNEXPECTED_END_OF_FILE
        assert parser.errors[0].message == "Unexpected end of file"

    def test_peek(self, make_parser):
        parser = make_parser("label start:")
        assert parser.peek(1).type == TokenType.IDENTIFIER
        assert parser.peek(2).type == TokenType.COLON
        assert parser.peek(3).is_invalid()
        assert parser.peek_next().type == TokenType.LABEL

    def test_test_value(self, make_parser):
        parser = make_parser("label start")
        assert parser.test_value("label")
        assert not parser.test_value("start")

    def test_test_matches_meta_type(self, make_parser):
        parser = make_parser('"hi"')
        assert parser.test(TokenType.DOUBLE_QUOTE)
        assert parser.test(TokenType.STRING_LITERAL)

    def test_column(self, make_parser):
        parser = make_parser("    pass")
        assert parser.column() == 4

    def test_skip_empty_lines(self, make_parser):
        parser = make_parser("\n\n  \npass")
        parser.skip_empty_lines()
        assert parser.peek_next().type == TokenType.PASS

    def test_skip_to_eol_stops_at_newline(self, make_parser):
        parser = make_parser("a b c\nd")
        parser.skip_to_eol()
        assert parser.peek_next().type == TokenType.NEWLINE

    def test_skip_to_eol_stops_at_end(self, make_parser):
        parser = make_parser("a b c")
        parser.skip_to_eol()
        assert not parser.has_next()
        assert parser.errors == []


class TestExpectEol:
    def test_at_newline(self, make_parser):
        parser = make_parser("pass\nreturn")
        parser.next()
        assert parser.expect_eol()
        assert parser.errors == []

    def test_at_end_of_stream(self, make_parser):
        parser = make_parser("pass")
        parser.next()
        assert not parser.expect_eol()
        assert parser.errors == []

    def test_trailing_tokens(self, make_parser):
        parser = make_parser("pass extra tokens\nreturn")
        parser.next()
        assert parser.expect_eol()
        assert len(parser.errors) == 1
        error = parser.errors[0]
        assert error.error_type == ParseErrorType.UNEXPECTED_END_OF_LINE
        assert error.error_location.span.start.character == 5
        assert parser.peek_next().type == TokenType.NEWLINE


class TestTokenPrimitives:
    def test_require_token_consumes_on_match(self, make_parser):
        parser = make_parser("pass")
        assert parser.require_token(TokenType.PASS)
        assert parser.current().type == TokenType.PASS
        assert parser.errors == []

    def test_require_token_mismatch_does_not_consume(self, make_parser):
        parser = make_parser("pass")
        assert not parser.require_token(TokenType.LABEL)
        assert parser.peek_next().type == TokenType.PASS
        assert parser.current() is INVALID_TOKEN
        assert len(parser.errors) == 1
        error = parser.errors[0]
        assert error.error_type == ParseErrorType.UNEXPECTED_TOKEN
        assert error.expected_token_type == TokenType.LABEL
        assert error.message == "Expected token of type 'LABEL', but got 'PASS'"

    def test_require_token_at_end(self, make_parser):
        parser = make_parser("label")
        parser.next()
        assert not parser.require_token(TokenType.IDENTIFIER)
        error = parser.errors[0]
        assert error.next_token.is_invalid()
        # anchored on the last consumed token
        assert error.error_location.span.start.character == 0

    def test_optional_token(self, make_parser):
        parser = make_parser("pass")
        assert not parser.optional_token(TokenType.LABEL)
        assert parser.optional_token(TokenType.PASS)
        assert parser.errors == []

    def test_any_of_token(self, make_parser):
        parser = make_parser("return")
        assert parser.any_of_token([TokenType.PASS, TokenType.RETURN])
        assert parser.current().type == TokenType.RETURN

    def test_any_of_token_mismatch(self, make_parser):
        parser = make_parser("return")
        assert not parser.any_of_token([TokenType.PASS, TokenType.LABEL])
        assert parser.peek_next().type == TokenType.RETURN
        assert [e.error_type for e in parser.errors] == [ParseErrorType.UNEXPECTED_TOKEN]


class TestRuleCombinators:
    def test_optional_without_match(self, make_parser):
        parser = make_parser("pass")
        assert parser.optional(NeverRule()) is None
        assert parser.errors == []

    def test_optional_with_match(self, make_parser):
        parser = make_parser("pass")
        assert parser.optional(PassWordRule()) == "pass"

    def test_require_runs_parse(self, make_parser):
        parser = make_parser("pass")
        assert parser.require(PassWordRule()) == "pass"

    def test_any_of_first_match(self, make_parser):
        parser = make_parser("pass")
        assert parser.any_of([NeverRule(), PassWordRule()]) == "pass"

    def test_any_of_no_match(self, make_parser):
        parser = make_parser("label")
        assert parser.any_of([NeverRule()]) is None
        assert [e.error_type for e in parser.errors] == [ParseErrorType.UNEXPECTED_END_OF_LINE]


class TestErrors:
    def test_errors_mirror_program_error_list(self, make_parser):
        parser = make_parser("pass")
        parser.require_token(TokenType.LABEL)
        parser.next()
        parser.next()
        assert parser.program.error_list == parser.errors
        assert [e.error_type for e in parser.errors] == [
            ParseErrorType.UNEXPECTED_TOKEN,
            ParseErrorType.UNEXPECTED_END_OF_FILE,
        ]

    def test_print_errors_logs(self, make_parser, caplog):
        parser = make_parser("pass")
        parser.require_token(TokenType.LABEL)
        with caplog.at_level(logging.ERROR, logger="rpyfront.parser"):
            parser.print_errors()
        assert "Expected token of type 'LABEL'" in caplog.text

    def test_empty_document_error_has_no_location(self, make_parser):
        parser = make_parser("")
        parser.require_token(TokenType.LABEL)
        assert parser.errors[0].error_location is None

    def test_token_type_string(self):
        assert DocumentParser.get_token_type_string(TokenType.COLON) == "COLON"
        assert DocumentParser.get_token_type_string(None) == "None"


class TestScopes:
    def test_starts_in_global_scope(self, make_parser):
        parser = make_parser("")
        assert parser.current_scope is parser.program.global_scope

    def test_push_and_pop(self, make_parser):
        parser = make_parser("")
        child = parser.push_scope()
        assert parser.current_scope is child
        assert child.parent is parser.program.global_scope
        assert parser.pop_scope() is child
        assert parser.current_scope is parser.program.global_scope

    def test_cannot_pop_global(self, make_parser):
        parser = make_parser("")
        with pytest.raises(ParserStateError):
            parser.pop_scope()

    def test_scope_context_manager(self, make_parser):
        parser = make_parser("")
        with parser.scope() as scope:
            assert parser.current_scope is scope
        assert parser.current_scope is parser.program.global_scope
        assert scope in parser.program.scopes


class TestLocations:
    def test_location_from_current(self, make_parser):
        parser = make_parser("label start")
        parser.next()
        parser.next()
        location = parser.location_from_current()
        assert location.filename == "test.rpy"
        assert (location.span.start.character, location.span.end.character) == (6, 11)

    def test_debug_print_line_does_not_move(self, make_parser, caplog):
        parser = make_parser("label start:\npass")
        with caplog.at_level(logging.DEBUG, logger="rpyfront.parser"):
            parser.debug_print_line()
        assert "IDENTIFIER" in caplog.text
        assert "PASS" not in caplog.text
        assert parser.peek_next().type == TokenType.LABEL


class TestEntryPoints:
    def test_parse_document(self):
        program = asyncio.run(parse_document(TextDocument("pass\n", "a.rpy")))
        assert program.error_list == []
        assert len(program.statements) == 1
        assert program.document.filename == "a.rpy"

    def test_parse(self):
        program = parse("return\n")
        assert len(program.statements) == 1

    def test_concurrent_parses_are_independent(self):
        sources = [
            "default a = 1\n",
            "default a = 1\ndefault a = 2\n",
            "label start:\n    pass\n",
        ]

        async def run():
            return await asyncio.gather(*(parse_document(TextDocument(s)) for s in sources))

        programs = asyncio.run(run())
        assert [len(p.error_list) for p in programs] == [0, 1, 0]
        assert "a" in programs[0].global_scope.symbols
        assert "start" in programs[2].global_scope.labels
        assert "start" not in programs[0].global_scope.labels

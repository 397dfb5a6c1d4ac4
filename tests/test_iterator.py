"""Tests for TokenList and the filtering TokenListIterator."""

from __future__ import annotations

import pytest

from rpyfront.lexer import tokenize
from rpyfront.tokens import TokenType


def _iter(source: str, *filtered: TokenType):
    it = tokenize(source).get_iterator()
    if filtered:
        it.set_filter(filtered)
    return it


class TestTokenList:
    def test_len_and_index(self):
        tokens = tokenize("a b")
        assert len(tokens) == 3
        assert tokens[1].type == TokenType.WHITESPACE

    def test_iteration_is_replayable(self):
        tokens = tokenize("a b")
        assert list(tokens) == list(tokens)


class TestTraversal:
    def test_unfiltered(self):
        it = _iter("a b")
        types = []
        while it.has_next():
            types.append(it.next().type)
        assert types == [TokenType.IDENTIFIER, TokenType.WHITESPACE, TokenType.IDENTIFIER]

    def test_token_is_a_peek(self):
        it = _iter("a b")
        first = it.token
        assert it.token is first
        assert it.next() is first

    def test_exhausted(self):
        it = _iter("a")
        it.next()
        assert not it.has_next()
        assert it.token is None
        with pytest.raises(StopIteration):
            it.next()

    def test_empty_list(self):
        it = _iter("")
        assert not it.has_next()
        assert it.token is None


class TestFiltering:
    def test_filter_by_type(self):
        it = _iter("a b c", TokenType.WHITESPACE)
        types = []
        while it.has_next():
            types.append(it.next().type)
        assert types == [TokenType.IDENTIFIER] * 3

    def test_filter_by_meta_type(self):
        it = _iter('x "s" y', TokenType.STRING_LITERAL, TokenType.WHITESPACE)
        types = []
        while it.has_next():
            types.append(it.next().type)
        assert types == [TokenType.IDENTIFIER, TokenType.IDENTIFIER]

    def test_leading_filtered_tokens_are_skipped(self):
        it = _iter("# c\n  x", TokenType.COMMENT, TokenType.WHITESPACE)
        assert it.token.type == TokenType.NEWLINE
        it.next()
        assert it.token.type == TokenType.IDENTIFIER

    def test_only_filtered_tokens(self):
        it = _iter("   ", TokenType.WHITESPACE)
        assert not it.has_next()

    def test_set_filter_mid_stream(self):
        it = _iter("a b c")
        it.next()
        assert it.token.type == TokenType.WHITESPACE
        it.set_filter([TokenType.WHITESPACE])
        assert it.token.type == TokenType.IDENTIFIER


class TestLookahead:
    def test_peek_offsets(self):
        it = _iter("a b c", TokenType.WHITESPACE)
        source_doc = "a b c"
        assert source_doc[it.peek(0).start.offset] == "a"
        assert source_doc[it.peek(1).start.offset] == "b"
        assert source_doc[it.peek(2).start.offset] == "c"
        assert it.peek(3) is None

    def test_peek_does_not_consume(self):
        it = _iter("a b", TokenType.WHITESPACE)
        it.peek(1)
        assert it.token.start.offset == 0


class TestClone:
    def test_clone_is_independent(self):
        it = _iter("a b c", TokenType.WHITESPACE)
        copy = it.clone()
        copy.next()
        copy.next()
        assert it.token.start.offset == 0
        assert copy.token.start.offset == 4

    def test_clone_keeps_filter(self):
        it = _iter("a b", TokenType.WHITESPACE)
        copy = it.clone()
        copy.next()
        assert copy.token.type == TokenType.IDENTIFIER

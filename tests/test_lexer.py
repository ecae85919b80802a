"""Tests for the schema DSL lexer.

Verifies that the lexer:
- Recognizes keywords, primitive types, punctuation and literals
- Tracks 1-based line and column for every token
- Skips line and block comments
- Captures the raw ``{ ... }`` block after ``json`` / ``json[]``
- Drops unknown characters with a warning instead of failing
- Returns an empty token list when the file cannot be read
"""

import logging

import pytest

from dbschema.dsl.lexer import Lexer, Token, TokenType, tokenize
from dbschema.errors import LexError


def _types(source: str) -> list[TokenType]:
    return [t.type for t in tokenize(source)]


# ============================================================
# Test: Basic tokens
# ============================================================


class TestBasicTokens:
    """Verify keyword, identifier and punctuation recognition."""

    def test_empty_source_yields_only_eof(self) -> None:
        """An empty source still ends with EOF."""
        tokens = tokenize("")
        assert [t.type for t in tokens] == [TokenType.EOF]

    def test_model_header(self) -> None:
        """'model user {}' lexes to MODEL IDENTIFIER LBRACE RBRACE EOF."""
        assert _types("model user {}") == [
            TokenType.MODEL,
            TokenType.IDENTIFIER,
            TokenType.LBRACE,
            TokenType.RBRACE,
            TokenType.EOF,
        ]

    @pytest.mark.parametrize(
        "word,expected",
        [
            ("int", TokenType.INT_TYPE),
            ("string", TokenType.STRING_TYPE),
            ("float", TokenType.FLOAT_TYPE),
            ("boolean", TokenType.BOOLEAN_TYPE),
            ("datetime", TokenType.DATETIME_TYPE),
            ("date", TokenType.DATE_TYPE),
            ("json", TokenType.JSON_TYPE),
        ],
    )
    def test_primitive_type_keywords(self, word: str, expected: TokenType) -> None:
        """Each primitive type name is its own token type."""
        assert tokenize(word)[0].type is expected

    def test_decorator_and_parens(self) -> None:
        """'@default(now())' lexes to AT IDENT LPAREN IDENT LPAREN RPAREN RPAREN."""
        assert _types("@default(now())")[:-1] == [
            TokenType.AT,
            TokenType.IDENTIFIER,
            TokenType.LPAREN,
            TokenType.IDENTIFIER,
            TokenType.LPAREN,
            TokenType.RPAREN,
            TokenType.RPAREN,
        ]

    def test_composite_unique(self) -> None:
        """'@@unique' is a single COMPOSITE token."""
        token = tokenize("@@unique([a, b])")[0]
        assert token.type is TokenType.COMPOSITE
        assert token.value == "@@unique"

    def test_unknown_composite_is_dropped(self) -> None:
        """An unknown '@@' block is reported and dropped."""
        lexer = Lexer("@@bogus")
        tokens = lexer.tokenize()
        assert [t.type for t in tokens] == [TokenType.EOF]
        assert "Unknown composite block '@@bogus'" in lexer.diagnostics[0].message

    def test_array_marker(self) -> None:
        """'string[]' lexes to STRING_TYPE LBRACKET RBRACKET."""
        assert _types("string[]")[:-1] == [
            TokenType.STRING_TYPE,
            TokenType.LBRACKET,
            TokenType.RBRACKET,
        ]


# ============================================================
# Test: Literals
# ============================================================


class TestLiterals:
    """Verify string and number literal scanning."""

    def test_double_quoted_string(self) -> None:
        """Double-quoted strings drop the quotes."""
        token = tokenize('"draft"')[0]
        assert token == Token(TokenType.STRING_LITERAL, "draft", 1, 1)

    def test_single_quoted_string(self) -> None:
        """Single quotes are accepted too."""
        token = tokenize("'draft'")[0]
        assert token.type is TokenType.STRING_LITERAL
        assert token.value == "draft"

    def test_escape_passes_through(self) -> None:
        """Backslash escapes are kept verbatim."""
        token = tokenize(r'"a\"b"')[0]
        assert token.value == r"a\"b"

    def test_integer(self) -> None:
        token = tokenize("42")[0]
        assert token.type is TokenType.NUMBER_LITERAL
        assert token.value == "42"

    def test_decimal(self) -> None:
        token = tokenize("3.14")[0]
        assert token.type is TokenType.NUMBER_LITERAL
        assert token.value == "3.14"

    def test_trailing_dot_is_dropped(self) -> None:
        """'1.' is not a number; it is reported and dropped."""
        lexer = Lexer("1.")
        tokens = lexer.tokenize()
        assert tokens[0].type is TokenType.EOF
        assert "Invalid number format" in lexer.diagnostics[0].message

    def test_unterminated_string_is_dropped(self) -> None:
        lexer = Lexer('"open')
        tokens = lexer.tokenize()
        assert [t.type for t in tokens] == [TokenType.EOF]
        assert lexer.diagnostics[0].message == "Unterminated string literal"


# ============================================================
# Test: Positions and comments
# ============================================================


class TestPositions:
    """Verify line/column tracking and comment skipping."""

    def test_line_and_column(self) -> None:
        """Tokens on the second line report line 2 and their 1-based column."""
        tokens = tokenize("model user {\n  id int\n}")
        id_token = tokens[3]
        assert id_token.value == "id"
        assert (id_token.line, id_token.column) == (2, 3)
        int_token = tokens[4]
        assert (int_token.line, int_token.column) == (2, 6)

    def test_line_comment_skipped(self) -> None:
        assert _types("// comment\nmodel") == [TokenType.MODEL, TokenType.EOF]

    def test_block_comment_skipped(self) -> None:
        tokens = tokenize("/* a\nb */ model")
        assert tokens[0].type is TokenType.MODEL
        assert tokens[0].line == 2

    def test_unterminated_block_comment_warns(self) -> None:
        lexer = Lexer("/* never closed")
        lexer.tokenize()
        assert lexer.diagnostics[0].message == "Unterminated block comment"


# ============================================================
# Test: JSON blocks
# ============================================================


class TestJsonBlocks:
    """Verify raw capture of the json type block."""

    def test_json_block_captured_raw(self) -> None:
        """The braces after 'json' are captured as one RAW_OBJECT token."""
        tokens = tokenize("meta json { a: string, b: { c: int } }")
        assert tokens[1].type is TokenType.JSON_TYPE
        assert tokens[2].type is TokenType.RAW_OBJECT
        assert tokens[2].value == "{ a: string, b: { c: int } }"

    def test_json_array_block_captured_raw(self) -> None:
        """'json[] { ... }' keeps raw capture armed across the brackets."""
        assert _types("tags json[] { name: string }")[:-1] == [
            TokenType.IDENTIFIER,
            TokenType.JSON_TYPE,
            TokenType.LBRACKET,
            TokenType.RBRACKET,
            TokenType.RAW_OBJECT,
        ]

    def test_brace_after_other_tokens_is_lbrace(self) -> None:
        """Capture is disarmed by any token other than '[', ']' or '{'."""
        assert _types("json @required {")[-2] is TokenType.LBRACE

    def test_unterminated_json_block(self) -> None:
        lexer = Lexer("meta json { a: string")
        tokens = lexer.tokenize()
        assert TokenType.RAW_OBJECT not in [t.type for t in tokens]
        assert lexer.diagnostics[0].message == "Unterminated json type block"


# ============================================================
# Test: Unknown characters
# ============================================================


class TestUnknownCharacters:
    """Verify unknown characters are dropped with a warning."""

    def test_unknown_character_dropped(self, caplog: pytest.LogCaptureFixture) -> None:
        """'#' is dropped, logged, and recorded as a LexError."""
        lexer = Lexer("model # user")
        with caplog.at_level(logging.WARNING, logger="dbschema.dsl.lexer"):
            tokens = lexer.tokenize()

        assert [t.type for t in tokens] == [
            TokenType.MODEL,
            TokenType.IDENTIFIER,
            TokenType.EOF,
        ]
        assert lexer.diagnostics == [LexError("Unexpected character '#'", 1, 7)]
        assert "Lex Error at [1:7]" in caplog.text

    def test_hyphenated_identifier_is_one_token(self) -> None:
        """'user-profile' stays one identifier for the semantic analyzer."""
        token = tokenize("user-profile")[0]
        assert token.type is TokenType.IDENTIFIER
        assert token.value == "user-profile"


# ============================================================
# Test: File input
# ============================================================


class TestFromFile:
    """Verify Lexer.from_file behavior."""

    def test_reads_file(self, tmp_path) -> None:
        path = tmp_path / "schema.dbs"
        path.write_text("model tag { id int }")
        tokens = Lexer.from_file(path)
        assert tokens[0].type is TokenType.MODEL
        assert tokens[-1].type is TokenType.EOF

    def test_missing_file_returns_empty(self, tmp_path) -> None:
        """An unreadable file yields no tokens at all (not even EOF)."""
        assert Lexer.from_file(tmp_path / "missing.dbs") == []

"""Hand-written tokenizer for the schema DSL.

Turns schema source text into a list of ``Token``s terminated by an
``EOF`` token.  Each token records the 1-based line and column of its first
character.

Malformed input never raises: unknown characters, unterminated strings,
bad numbers and unknown ``@@`` blocks are logged as warnings, recorded in
``Lexer.diagnostics`` as ``LexError``s, and dropped from the stream so the
parser never sees them.

The lexer has one mode switch.  After the ``json`` type keyword (and an
optional ``[]``) the next ``{`` starts a raw capture: the whole brace
block, nested braces included, becomes a single ``RAW_OBJECT`` token whose
value is the verbatim text.  The parser turns that text into a
``JsonTypeDefinition``.

Usage:
    from dbschema.dsl.lexer import tokenize

    tokens = tokenize("model user { id int @primary_key }")
    [t.type.name for t in tokens][:3]
    # ['MODEL', 'IDENTIFIER', 'LBRACE']
"""

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from dbschema.errors import LexError

logger = logging.getLogger(__name__)


class TokenType(Enum):
    MODEL = "model"

    INT_TYPE = "int"
    STRING_TYPE = "string"
    FLOAT_TYPE = "float"
    BOOLEAN_TYPE = "boolean"
    JSON_TYPE = "json"
    DATETIME_TYPE = "datetime"
    DATE_TYPE = "date"

    LBRACE = "{"
    RBRACE = "}"
    LPAREN = "("
    RPAREN = ")"
    LBRACKET = "["
    RBRACKET = "]"
    COMMA = ","
    COLON = ":"
    AT = "@"
    COMPOSITE = "@@"

    IDENTIFIER = "identifier"
    STRING_LITERAL = "string literal"
    NUMBER_LITERAL = "number literal"
    RAW_OBJECT = "json block"

    EOF = "end of input"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class Token:
    type: TokenType
    value: str
    line: int
    column: int


KEYWORDS: dict[str, TokenType] = {
    "model": TokenType.MODEL,
    "int": TokenType.INT_TYPE,
    "string": TokenType.STRING_TYPE,
    "float": TokenType.FLOAT_TYPE,
    "boolean": TokenType.BOOLEAN_TYPE,
    "json": TokenType.JSON_TYPE,
    "datetime": TokenType.DATETIME_TYPE,
    "date": TokenType.DATE_TYPE,
}

PRIMITIVE_TYPES: frozenset[TokenType] = frozenset(
    {
        TokenType.INT_TYPE,
        TokenType.STRING_TYPE,
        TokenType.FLOAT_TYPE,
        TokenType.BOOLEAN_TYPE,
        TokenType.DATETIME_TYPE,
        TokenType.DATE_TYPE,
    }
)

COMPOSITE_BLOCKS: frozenset[str] = frozenset({"unique", "index", "id"})

_PUNCTUATION: dict[str, TokenType] = {
    "}": TokenType.RBRACE,
    "(": TokenType.LPAREN,
    ")": TokenType.RPAREN,
    "[": TokenType.LBRACKET,
    "]": TokenType.RBRACKET,
    ",": TokenType.COMMA,
    ":": TokenType.COLON,
}


def _is_ident_start(char: str) -> bool:
    return char.isascii() and (char.isalpha() or char == "_")


def _is_ident_char(char: str) -> bool:
    # Hyphens are accepted so "user-profile" reaches the semantic analyzer
    # as one (badly named) identifier instead of splitting into two.
    return char.isascii() and (char.isalnum() or char in "_-")


class Lexer:
    """Single-pass scanner over schema source text.

    Attributes:
        diagnostics: ``LexError``s for every dropped token, in source order.
    """

    def __init__(self, source: str) -> None:
        self._source = source
        self._pos = 0
        self._line = 1
        self._column = 1
        self._expecting_json_block = False
        self.diagnostics: list[LexError] = []

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def tokenize(self) -> list[Token]:
        """Scan the whole source and return the token stream.

        UNKNOWN tokens are dropped; the list always ends with ``EOF``.
        """
        tokens: list[Token] = []
        while True:
            token = self._next_token()
            if token.type is TokenType.UNKNOWN:
                continue
            tokens.append(token)
            if token.type is TokenType.EOF:
                return tokens

    @classmethod
    def from_file(cls, path: str | Path) -> list[Token]:
        """Tokenize a schema file.

        Returns an empty list (and logs an error) if the file cannot be
        read, so callers can treat "no tokens" as a fatal condition.
        """
        try:
            source = Path(path).read_text(encoding="utf-8")
        except OSError as e:
            logger.error("Error reading %s: %s", path, e)
            return []
        return cls(source).tokenize()

    # ------------------------------------------------------------------
    # Character cursor
    # ------------------------------------------------------------------

    def _peek(self, offset: int = 0) -> str:
        index = self._pos + offset
        return self._source[index] if index < len(self._source) else ""

    def _advance(self) -> str:
        char = self._source[self._pos]
        self._pos += 1
        if char == "\n":
            self._line += 1
            self._column = 1
        else:
            self._column += 1
        return char

    def _at_end(self) -> bool:
        return self._pos >= len(self._source)

    def _consume_while(self, predicate) -> str:
        start = self._pos
        while not self._at_end() and predicate(self._peek()):
            self._advance()
        return self._source[start:self._pos]

    def _warn(self, message: str, line: int, column: int) -> Token:
        error = LexError(message, line, column)
        self.diagnostics.append(error)
        logger.warning(str(error))
        return Token(TokenType.UNKNOWN, message, line, column)

    # ------------------------------------------------------------------
    # Scanning
    # ------------------------------------------------------------------

    def _skip_whitespace_and_comments(self) -> None:
        while not self._at_end():
            char = self._peek()
            if char.isspace():
                self._advance()
            elif char == "/" and self._peek(1) == "/":
                while not self._at_end() and self._peek() != "\n":
                    self._advance()
            elif char == "/" and self._peek(1) == "*":
                line, column = self._line, self._column
                self._advance()
                self._advance()
                while not self._at_end():
                    if self._advance() == "*" and self._peek() == "/":
                        self._advance()
                        break
                else:
                    self._warn("Unterminated block comment", line, column)
            else:
                return

    def _next_token(self) -> Token:
        self._skip_whitespace_and_comments()

        line, column = self._line, self._column
        if self._at_end():
            return Token(TokenType.EOF, "", line, column)

        char = self._peek()

        # Raw capture stays armed across the optional "[]" of json[].
        if self._expecting_json_block and char not in "[]{":
            self._expecting_json_block = False

        if char == "{":
            if self._expecting_json_block:
                self._expecting_json_block = False
                return self._consume_raw_object(line, column)
            self._advance()
            return Token(TokenType.LBRACE, "{", line, column)

        if char in _PUNCTUATION:
            self._advance()
            return Token(_PUNCTUATION[char], char, line, column)

        if char == "@":
            self._advance()
            if self._peek() != "@":
                return Token(TokenType.AT, "@", line, column)
            self._advance()
            name = self._consume_while(_is_ident_char)
            if name in COMPOSITE_BLOCKS:
                return Token(TokenType.COMPOSITE, f"@@{name}", line, column)
            return self._warn(f"Unknown composite block '@@{name}'", line, column)

        if char in "\"'":
            return self._consume_string(char, line, column)

        if _is_ident_start(char):
            value = self._consume_while(_is_ident_char)
            token_type = KEYWORDS.get(value, TokenType.IDENTIFIER)
            if token_type is TokenType.JSON_TYPE:
                self._expecting_json_block = True
            return Token(token_type, value, line, column)

        if char.isdigit():
            return self._consume_number(line, column)

        self._advance()
        return self._warn(f"Unexpected character '{char}'", line, column)

    def _consume_raw_object(self, line: int, column: int) -> Token:
        start = self._pos
        depth = 0
        while not self._at_end():
            char = self._advance()
            if char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
                if depth == 0:
                    return Token(
                        TokenType.RAW_OBJECT, self._source[start:self._pos], line, column
                    )
        return self._warn("Unterminated json type block", line, column)

    def _consume_number(self, line: int, column: int) -> Token:
        value = self._consume_while(str.isdigit)
        if self._peek() == ".":
            value += self._advance()
            if not self._peek().isdigit():
                return self._warn(f"Invalid number format '{value}'", line, column)
            value += self._consume_while(str.isdigit)
        return Token(TokenType.NUMBER_LITERAL, value, line, column)

    def _consume_string(self, quote: str, line: int, column: int) -> Token:
        self._advance()  # opening quote
        chars: list[str] = []
        while not self._at_end() and self._peek() != quote:
            char = self._advance()
            if char == "\\" and not self._at_end():
                # Escapes pass through untouched.
                chars.append(char + self._advance())
            else:
                chars.append(char)
        if self._at_end():
            return self._warn("Unterminated string literal", line, column)
        self._advance()  # closing quote
        return Token(TokenType.STRING_LITERAL, "".join(chars), line, column)


def tokenize(source: str) -> list[Token]:
    """Tokenize *source*; convenience wrapper around ``Lexer``."""
    return Lexer(source).tokenize()

"""Recursive-descent parser for the schema DSL.

Consumes the token stream from ``dbschema.dsl.lexer`` and builds a
``SchemaNode``.  Grammar (informal):

    schema           := model_def*
    model_def        := "model" IDENT "{" (field_def | composite_unique)* "}"
    composite_unique := "@@unique" "(" "[" IDENT ("," IDENT)* "]" ")"
    field_def        := IDENT type ("[" "]")? decorator*
    type             := primitive | "json" ("[" "]")? json_block | IDENT
    decorator        := "@" ( relation_kind ["(" IDENT ")"]
                          | "primary_key" | "unique" | "required"
                          | "default" "(" default_value ")" )

Error recovery works at model granularity.  A ``SchemaSyntaxError``
raised while parsing one model is recorded, tokens are skipped up to the
next ``model`` keyword (or end of input), and parsing resumes, so one run
reports every broken model.  ``parse()`` never raises a syntax error: it
returns a ``ParseResult`` that the caller must inspect (or call
``raise_for_errors()`` on).

Usage:
    from dbschema.dsl.lexer import tokenize
    from dbschema.dsl.parser import Parser

    result = Parser(tokenize(source)).parse()
    if not result.ok:
        for error in result.errors:
            print(error)
"""

from dataclasses import dataclass, field

from dbschema.dsl.json_shape import parse_json_shape
from dbschema.dsl.lexer import PRIMITIVE_TYPES, Token, TokenType
from dbschema.dsl.nodes import (
    DefaultFunction,
    DefaultValue,
    FieldNode,
    FunctionDefault,
    JsonTypeDefinition,
    LiteralDefault,
    ModelNode,
    Relation,
    RelationType,
    SchemaNode,
)
from dbschema.errors import CompileError, SchemaSyntaxError

# Keywords that may still be used as field names ("date date").
_NAME_TOKENS: frozenset[TokenType] = PRIMITIVE_TYPES | {
    TokenType.IDENTIFIER,
    TokenType.JSON_TYPE,
}

_RELATION_DECORATORS: dict[str, RelationType] = {r.value: r for r in RelationType}
_DEFAULT_FUNCTIONS: dict[str, DefaultFunction] = {f.value: f for f in DefaultFunction}


@dataclass
class ParseResult:
    """Outcome of ``Parser.parse()``.

    Attributes:
        schema: The AST built from every model that parsed cleanly.
            ``None`` only when parsing could not start at all (the token
            stream was empty).
        errors: Every syntax error, in source order.
    """

    schema: SchemaNode | None
    errors: list[SchemaSyntaxError] = field(default_factory=list)

    @property
    def fatal(self) -> bool:
        """True if no AST could be produced at all."""
        return self.schema is None

    @property
    def ok(self) -> bool:
        return not self.fatal and not self.errors

    def raise_for_errors(self) -> SchemaNode:
        """Return the schema, or raise ``CompileError`` listing every error."""
        if not self.ok:
            raise CompileError(list(self.errors))
        assert self.schema is not None
        return self.schema


class Parser:
    """Recursive-descent parser with model-level error recovery."""

    def __init__(self, tokens: list[Token]) -> None:
        self._tokens = tokens
        self._index = 0
        self._errors: list[SchemaSyntaxError] = []

    # ------------------------------------------------------------------
    # Token cursor
    # ------------------------------------------------------------------

    def _peek(self, offset: int = 0) -> Token:
        index = self._index + offset
        if index < len(self._tokens):
            return self._tokens[index]
        return self._tokens[-1]

    def _advance(self) -> Token:
        token = self._peek()
        if self._index < len(self._tokens):
            self._index += 1
        return token

    def _check(self, token_type: TokenType) -> bool:
        return self._peek().type is token_type

    def _expect(self, token_type: TokenType, message: str) -> Token:
        token = self._peek()
        if token.type is token_type:
            return self._advance()
        raise self._error(message, token)

    def _expect_name(self, message: str) -> Token:
        """Expect a field name; type keywords are valid names too."""
        token = self._peek()
        if token.type in _NAME_TOKENS:
            return self._advance()
        raise self._error(message, token)

    @staticmethod
    def _error(message: str, token: Token) -> SchemaSyntaxError:
        return SchemaSyntaxError(message, token.line, token.column)

    def _record(self, message: str, token: Token) -> None:
        self._errors.append(self._error(message, token))

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    def parse(self) -> ParseResult:
        """Parse every model definition until end of input."""
        if not self._tokens:
            return ParseResult(schema=None, errors=[])
        if self._tokens[-1].type is not TokenType.EOF:
            last = self._tokens[-1]
            self._tokens = [*self._tokens, Token(TokenType.EOF, "", last.line, last.column)]

        models: list[ModelNode] = []
        while not self._check(TokenType.EOF):
            start = self._index
            try:
                models.append(self._parse_model())
            except SchemaSyntaxError as e:
                self._errors.append(e)
                self._synchronize()

            if self._index == start:
                # Recovery made no progress: drop the token to guarantee termination.
                token = self._advance()
                self._record(f"Unexpected token '{token.value}'", token)

        return ParseResult(schema=SchemaNode(models=models), errors=self._errors)

    def _synchronize(self) -> None:
        """Skip tokens until the next ``model`` keyword or end of input."""
        while not self._check(TokenType.MODEL) and not self._check(TokenType.EOF):
            self._advance()

    # ------------------------------------------------------------------
    # Models
    # ------------------------------------------------------------------

    def _parse_model(self) -> ModelNode:
        model_token = self._expect(TokenType.MODEL, "Expected 'model' keyword")
        name_token = self._expect(TokenType.IDENTIFIER, "Expected model name")
        self._expect(TokenType.LBRACE, "Expected '{' after model name")

        fields: list[FieldNode] = []
        combined_uniques: list[list[str]] = []

        while not self._check(TokenType.RBRACE) and not self._check(TokenType.EOF):
            token = self._peek()
            if token.type in _NAME_TOKENS:
                fields.append(self._parse_field())
            elif token.type is TokenType.COMPOSITE:
                self._advance()
                if token.value == "@@unique":
                    combined_uniques.append(self._parse_composite_unique())
                else:
                    self._record(f"Unsupported composite block '{token.value}'", token)
                    self._skip_arguments()
            elif token.type is TokenType.MODEL:
                raise self._error(
                    f"Expected '}}' to close model '{name_token.value}'", token
                )
            else:
                self._record(f"Unexpected token '{token.value}' inside model", token)
                self._advance()

        self._expect(
            TokenType.RBRACE, f"Expected '}}' to close model '{name_token.value}'"
        )

        return ModelNode(
            name=name_token.value,
            fields=fields,
            combined_uniques=combined_uniques,
            line=model_token.line,
            column=model_token.column,
        )

    def _skip_arguments(self) -> None:
        """Skip a balanced ``( ... )`` group following an unsupported block."""
        if not self._check(TokenType.LPAREN):
            return
        depth = 0
        while not self._check(TokenType.EOF):
            token = self._advance()
            if token.type is TokenType.LPAREN:
                depth += 1
            elif token.type is TokenType.RPAREN:
                depth -= 1
                if depth == 0:
                    return

    def _parse_composite_unique(self) -> list[str]:
        self._expect(TokenType.LPAREN, "Expected '(' after @@unique")
        self._expect(TokenType.LBRACKET, "Expected '[' after @@unique(")

        names: list[str] = []
        while True:
            names.append(
                self._expect_name("Expected field name in @@unique").value
            )
            if self._check(TokenType.COMMA):
                self._advance()
            elif self._check(TokenType.RBRACKET):
                break
            else:
                raise self._error("Expected ',' or ']' in @@unique", self._peek())

        self._expect(TokenType.RBRACKET, "Expected ']' in @@unique")
        self._expect(TokenType.RPAREN, "Expected ')' after @@unique")
        return names

    # ------------------------------------------------------------------
    # Fields
    # ------------------------------------------------------------------

    def _parse_field(self) -> FieldNode:
        name_token = self._advance()

        json_type: JsonTypeDefinition | None = None
        is_array = False
        type_token = self._peek()

        if type_token.type in PRIMITIVE_TYPES or type_token.type is TokenType.IDENTIFIER:
            field_type = self._advance().value
        elif type_token.type is TokenType.JSON_TYPE:
            field_type = self._advance().value
            is_array = self._parse_array_marker()
            block = self._peek()
            if block.type is not TokenType.RAW_OBJECT:
                raise self._error("Expected json type block after 'json'", block)
            self._advance()
            json_type = parse_json_shape(block.value, block.line, block.column, is_array)
        else:
            raise self._error(f"Unexpected type '{type_token.value}'", type_token)

        if self._parse_array_marker():
            is_array = True

        attrs = self._parse_decorators()

        return FieldNode(
            name=name_token.value,
            field_type=field_type,
            is_array=is_array,
            json_type=json_type,
            line=name_token.line,
            column=name_token.column,
            **attrs,
        )

    def _parse_array_marker(self) -> bool:
        if self._check(TokenType.LBRACKET) and self._peek(1).type is TokenType.RBRACKET:
            self._advance()
            self._advance()
            return True
        return False

    def _parse_decorators(self) -> dict:
        attrs: dict = {}
        seen: set[str] = set()

        while self._check(TokenType.AT):
            self._advance()
            token = self._expect(TokenType.IDENTIFIER, "Expected decorator name")
            name = token.value
            key = "relation" if name in _RELATION_DECORATORS else name
            if key in seen:
                raise self._error(f"Duplicate decorator '@{name}'", token)
            seen.add(key)

            if name in _RELATION_DECORATORS:
                foreign_key = None
                if self._check(TokenType.LPAREN):
                    self._advance()
                    foreign_key = self._expect_name("Expected foreign key").value
                    self._expect(TokenType.RPAREN, "Expected ')' after foreign key")
                attrs["relation"] = Relation(
                    type=_RELATION_DECORATORS[name], foreign_key=foreign_key
                )
            elif name == "primary_key":
                attrs["is_primary_key"] = True
            elif name == "unique":
                attrs["is_unique"] = True
            elif name == "required":
                attrs["is_required"] = True
            elif name == "default":
                attrs["default"] = self._parse_default()
            else:
                raise self._error(f"Unknown decorator '@{name}'", token)

        return attrs

    def _parse_default(self) -> DefaultValue:
        self._expect(TokenType.LPAREN, "Expected '(' after @default")

        token = self._peek()
        value: DefaultValue
        if token.type is TokenType.NUMBER_LITERAL:
            self._advance()
            number = float(token.value) if "." in token.value else int(token.value)
            value = LiteralDefault(value=number)
        elif token.type is TokenType.STRING_LITERAL:
            self._advance()
            value = LiteralDefault(value=token.value)
        elif token.type is TokenType.IDENTIFIER and token.value in ("true", "false"):
            self._advance()
            value = LiteralDefault(value=token.value == "true")
        elif token.type is TokenType.IDENTIFIER and token.value in _DEFAULT_FUNCTIONS:
            self._advance()
            self._expect(TokenType.LPAREN, f"Expected '(' after {token.value}")
            self._expect(TokenType.RPAREN, f"Expected ')' after {token.value}(")
            value = FunctionDefault(name=_DEFAULT_FUNCTIONS[token.value])
        else:
            raise self._error(f"Invalid default value '{token.value}'", token)

        self._expect(TokenType.RPAREN, "Expected ')' after @default value")
        return value


def parse(tokens: list[Token]) -> ParseResult:
    """Parse *tokens*; convenience wrapper around ``Parser``."""
    return Parser(tokens).parse()

"""Exception hierarchy for the schema toolchain.

Every error raised by the library derives from ``DbSchemaError`` so callers
(and the CLI) can catch one type.  Positional diagnostics (lexer, parser,
semantic analyzer) carry the 1-based ``line`` and ``column`` of the
offending token and format as ``<Kind> at [line:column]: message``.

Usage:
    from dbschema.errors import DbSchemaError, SchemaSyntaxError

    try:
        result = compile_file("schema.dbs")
        result.raise_for_errors()
    except DbSchemaError as e:
        print(e)
"""


class DbSchemaError(Exception):
    """Base class for all dbschema errors."""


class ConfigurationError(DbSchemaError):
    """Raised when the connection string or config file is missing or invalid."""


class Diagnostic(DbSchemaError):
    """An error tied to a position in the schema source.

    Attributes:
        message: Human-readable description without the position prefix.
        line: 1-based line of the offending token (0 when unknown).
        column: 1-based column of the offending token (0 when unknown).
    """

    kind = "Error"

    def __init__(self, message: str, line: int = 0, column: int = 0) -> None:
        self.message = message
        self.line = line
        self.column = column
        super().__init__(f"{self.kind} at [{line}:{column}]: {message}")

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Diagnostic):
            return NotImplemented
        return (
            type(self) is type(other)
            and self.message == other.message
            and self.line == other.line
            and self.column == other.column
        )

    def __hash__(self) -> int:
        return hash((type(self), self.message, self.line, self.column))


class LexError(Diagnostic):
    """Unknown character or unterminated literal.

    Never raised by the lexer itself -- recorded as a warning and the
    offending token is dropped from the stream.
    """

    kind = "Lex Error"


class SchemaSyntaxError(Diagnostic):
    """Unexpected token while parsing the schema source."""

    kind = "Syntax Error"


class SemanticError(Diagnostic):
    """A well-formed schema that breaks a naming or uniqueness rule."""

    kind = "Semantic Error"


class CompileError(DbSchemaError):
    """Raised by ``CompileResult.raise_for_errors()`` when compilation failed.

    Attributes:
        errors: Every diagnostic collected during the run, in report order.
    """

    def __init__(self, errors: list[Diagnostic]) -> None:
        self.errors = list(errors)
        summary = "\n".join(str(e) for e in self.errors) or "no tokens produced"
        super().__init__(f"Schema compilation failed:\n{summary}")


class GenerationError(DbSchemaError):
    """Raised when the AST contains something the SQL generator cannot render.

    Examples: a literal default whose type does not match the column's
    scalar type, or a field type with no SQL mapping.
    """


class DatabaseConnectionError(DbSchemaError, ConnectionError):
    """Raised when the database cannot be reached or a catalog query fails."""


class MigrationError(DbSchemaError):
    """Raised when applying a migration script fails.

    Attributes:
        script: The full script that was being applied.
        cause: The driver exception.
    """

    def __init__(self, script: str, cause: BaseException) -> None:
        self.script = script
        self.cause = cause
        super().__init__(f"Failed to apply migration: {cause}")

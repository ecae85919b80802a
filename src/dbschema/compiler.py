"""Front-end pipeline: lexer -> parser -> semantic analyzer.

``compile_source`` and ``compile_file`` run every front-end stage and return
a ``CompileResult`` holding the AST and every diagnostic.  Semantic analysis
only runs when parsing produced no errors, so a broken model is reported
once (as a syntax error) rather than again as a semantic error.

Usage:
    from dbschema.compiler import compile_file

    result = compile_file("schema.dbs")
    schema = result.raise_for_errors()
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path

from dbschema.dsl.lexer import Lexer
from dbschema.dsl.nodes import SchemaNode
from dbschema.dsl.parser import Parser
from dbschema.dsl.semantic import SemanticAnalyzer
from dbschema.errors import (
    CompileError,
    Diagnostic,
    LexError,
    SchemaSyntaxError,
    SemanticError,
)

logger = logging.getLogger(__name__)


@dataclass
class CompileResult:
    """Outcome of compiling one schema source.

    Attributes:
        schema: The AST, or None if no tokens were produced.
        lex_errors: Dropped-token warnings.  They do not fail compilation.
        syntax_errors: Parser errors (recovered at model boundaries).
        semantic_errors: Semantic errors; empty when parsing failed.
        token_count: Tokens handed to the parser (0 if the source could not
            be read).
    """

    schema: SchemaNode | None = None
    lex_errors: list[LexError] = field(default_factory=list)
    syntax_errors: list[SchemaSyntaxError] = field(default_factory=list)
    semantic_errors: list[SemanticError] = field(default_factory=list)
    token_count: int = 0

    @property
    def errors(self) -> list[Diagnostic]:
        """Every error that fails compilation, in report order."""
        return [*self.syntax_errors, *self.semantic_errors]

    @property
    def ok(self) -> bool:
        return self.schema is not None and self.token_count > 0 and not self.errors

    def raise_for_errors(self) -> SchemaNode:
        """Return the schema, or raise ``CompileError``."""
        if not self.ok:
            raise CompileError(self.errors)
        assert self.schema is not None
        return self.schema


def compile_source(source: str, strict: bool = False) -> CompileResult:
    """Run the front end over schema source text.

    Args:
        source: Schema source text.
        strict: Enable reference checks in the semantic analyzer.
    """
    lexer = Lexer(source)
    tokens = lexer.tokenize()
    result = CompileResult(lex_errors=list(lexer.diagnostics), token_count=len(tokens))

    parsed = Parser(tokens).parse()
    result.syntax_errors = list(parsed.errors)
    if parsed.fatal:
        return result
    result.schema = parsed.schema

    if result.syntax_errors:
        logger.debug("Skipping semantic analysis: %d syntax errors", len(result.syntax_errors))
        return result

    result.semantic_errors = SemanticAnalyzer(parsed.schema, strict=strict).analyze()
    return result


def compile_file(path: str | Path, strict: bool = False) -> CompileResult:
    """Read *path* and run the front end over it.

    An unreadable file yields a result with no schema and
    ``token_count == 0``; the error is logged.
    """
    try:
        source = Path(path).read_text(encoding="utf-8")
    except OSError as e:
        logger.error("Error reading %s: %s", path, e)
        return CompileResult()
    return compile_source(source, strict=strict)

"""Schema DSL front end: lexer, parser, AST nodes and semantic analysis.

Usage:
    from dbschema.dsl import tokenize, Parser, SemanticAnalyzer
    from dbschema.dsl import SchemaNode, ModelNode, FieldNode
"""

from dbschema.dsl.lexer import Lexer, Token, TokenType, tokenize
from dbschema.dsl.nodes import (
    DefaultFunction,
    DefaultValue,
    FieldNode,
    FunctionDefault,
    JsonField,
    JsonTypeDefinition,
    LiteralDefault,
    ModelNode,
    Relation,
    RelationType,
    ScalarType,
    SchemaNode,
)
from dbschema.dsl.parser import ParseResult, Parser, parse
from dbschema.dsl.semantic import SemanticAnalyzer, is_snake_case

__all__ = [
    "Lexer",
    "Token",
    "TokenType",
    "tokenize",
    "Parser",
    "ParseResult",
    "parse",
    "SemanticAnalyzer",
    "is_snake_case",
    "SchemaNode",
    "ModelNode",
    "FieldNode",
    "Relation",
    "RelationType",
    "ScalarType",
    "DefaultFunction",
    "DefaultValue",
    "LiteralDefault",
    "FunctionDefault",
    "JsonField",
    "JsonTypeDefinition",
]

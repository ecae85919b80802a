"""Semantic analysis of a parsed schema.

Pure logic -- no I/O.  Walks a ``SchemaNode`` and collects every
``SemanticError`` instead of stopping at the first one:

- Duplicate model names (reported at the later declaration)
- Model names that are not snake_case
- Duplicate field names within a model
- Field names that are not snake_case

With ``strict=True`` it also checks references, which the default mode
leaves alone so that schemas accepted today keep being accepted:

- A relation's target type names a declared model
- A many-to-one / one-to-one ``foreign_key`` names a field of the model
- Every ``@@unique`` column names a field of the model

Usage:
    from dbschema.dsl.semantic import SemanticAnalyzer

    errors = SemanticAnalyzer(schema).analyze()
    for error in errors:
        print(error)
"""

import re

from dbschema.dsl.nodes import FieldNode, ModelNode, RelationType, SchemaNode
from dbschema.errors import SemanticError

SNAKE_CASE_RE = re.compile(r"^[a-z0-9]+(?:_[a-z0-9]+)*$")


def is_snake_case(name: str) -> bool:
    """Return True if *name* is lower snake_case (``user_profile``)."""
    return SNAKE_CASE_RE.match(name) is not None


class SemanticAnalyzer:
    """Collects naming and uniqueness errors for a schema.

    Args:
        schema: The AST to check.  Never modified.
        strict: Also validate relation targets, foreign keys and
            ``@@unique`` columns.
    """

    def __init__(self, schema: SchemaNode, strict: bool = False) -> None:
        self._schema = schema
        self._strict = strict
        self._errors: list[SemanticError] = []

    def analyze(self) -> list[SemanticError]:
        """Run every check and return the collected errors (may be empty)."""
        self._errors = []
        declared: set[str] = set()

        for model in self._schema.models:
            if model.name in declared:
                self._error(
                    f"Duplicate model name '{model.name}'. Model names must be unique.",
                    model.line,
                    model.column,
                )
            else:
                declared.add(model.name)
            self._visit_model(model)

        if self._strict:
            for model in self._schema.models:
                self._check_references(model, declared)

        return self._errors

    def _error(self, message: str, line: int, column: int) -> None:
        self._errors.append(SemanticError(message, line, column))

    def _visit_model(self, model: ModelNode) -> None:
        if not is_snake_case(model.name):
            self._error(
                f"Model name '{model.name}' must be in snake_case (e.g., 'user_profile'). "
                "Do not use capital letters or hyphens.",
                model.line,
                model.column,
            )

        seen: set[str] = set()
        for field in model.fields:
            if field.name in seen:
                self._error(
                    f"Duplicate field name '{field.name}' in model '{model.name}'. "
                    "Field names within a model must be unique.",
                    field.line,
                    field.column,
                )
            else:
                seen.add(field.name)
            self._visit_field(field)

    def _visit_field(self, field: FieldNode) -> None:
        if not is_snake_case(field.name):
            self._error(
                f"Field name '{field.name}' must be in snake_case (e.g., 'first_name'). "
                "Do not use capital letters or hyphens.",
                field.line,
                field.column,
            )

    def _check_references(self, model: ModelNode, declared: set[str]) -> None:
        field_names = {f.name for f in model.fields}

        for field in model.fields:
            if field.relation is None:
                continue
            if field.field_type not in declared:
                self._error(
                    f"Relation '{model.name}.{field.name}' targets unknown model "
                    f"'{field.field_type}'",
                    field.line,
                    field.column,
                )
            foreign_key = field.relation.foreign_key
            if (
                foreign_key
                and field.relation.type in (RelationType.MANY_TO_ONE, RelationType.ONE_TO_ONE)
                and foreign_key not in field_names
            ):
                self._error(
                    f"Foreign key '{foreign_key}' of '{model.name}.{field.name}' "
                    f"is not a field of '{model.name}'",
                    field.line,
                    field.column,
                )

        for columns in model.combined_uniques:
            for name in columns:
                if name not in field_names:
                    self._error(
                        f"@@unique column '{name}' is not a field of '{model.name}'",
                        model.line,
                        model.column,
                    )

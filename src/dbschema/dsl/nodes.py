"""Pydantic models for the schema AST.

The same node types are produced by the parser (from source text) and by
the introspector (from a live catalog), so the generator can diff the two
without caring where either came from.

Nodes are frozen once built.  Every node carries the 1-based ``line`` and
``column`` of its defining token; introspected nodes use ``0``.

Example:
    >>> field = FieldNode(name="id", field_type="int", is_primary_key=True,
    ...                   default=FunctionDefault(name=DefaultFunction.AUTOINCREMENT))
    >>> ModelNode(name="user", fields=[field]).field("id").is_column
    True
"""

from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field


# ============================================================================
# Vocabulary
# ============================================================================


class ScalarType(str, Enum):
    """Primitive field types understood by every dialect."""

    INT = "int"
    STRING = "string"
    FLOAT = "float"
    BOOLEAN = "boolean"
    JSON = "json"
    DATETIME = "datetime"
    DATE = "date"


SCALAR_TYPES: frozenset[str] = frozenset(t.value for t in ScalarType)


class RelationType(str, Enum):
    """Relation kinds that may decorate a field."""

    ONE_TO_MANY = "one_to_many"
    MANY_TO_ONE = "many_to_one"
    ONE_TO_ONE = "one_to_one"
    MANY_TO_MANY = "many_to_many"


class DefaultFunction(str, Enum):
    """Zero-argument generators allowed in ``@default(...)``."""

    AUTOINCREMENT = "autoincrement"
    UUID = "uuid"
    NOW = "now"


# ============================================================================
# Default values
# ============================================================================


class _Node(BaseModel):
    model_config = ConfigDict(frozen=True)


class LiteralDefault(_Node):
    """A literal default: number, string or boolean.

    Introspection may also store an unrecognized native default expression
    here verbatim.
    """

    kind: Literal["literal"] = "literal"
    value: bool | int | float | str


class FunctionDefault(_Node):
    """A function-call default such as ``now()``."""

    kind: Literal["function"] = "function"
    name: DefaultFunction


DefaultValue = Annotated[
    Union[LiteralDefault, FunctionDefault], Field(discriminator="kind")
]


# ============================================================================
# JSON shape
# ============================================================================


class JsonField(_Node):
    """One entry of a JSON shape, e.g. ``calories?: number``.

    ``type_name`` is the declared leaf type (``string``, ``number`` ...) or
    ``"object"`` when ``shape`` holds a nested definition.
    """

    name: str
    type_name: str
    optional: bool = False
    is_array: bool = False
    shape: "JsonTypeDefinition | None" = None


class JsonTypeDefinition(_Node):
    """Shape of a ``json`` field, parsed from the raw ``{ ... }`` block."""

    raw: str
    is_array: bool = False
    fields: list[JsonField] = Field(default_factory=list)
    line: int = 0
    column: int = 0


JsonField.model_rebuild()


# ============================================================================
# Schema nodes
# ============================================================================


class Relation(_Node):
    """Relation metadata from ``@many_to_one(author_id)`` and friends."""

    type: RelationType
    foreign_key: str | None = None


class FieldNode(_Node):
    """A column, or a relation placeholder pointing at another model."""

    name: str
    field_type: str
    is_array: bool = False
    is_primary_key: bool = False
    is_required: bool = False
    is_unique: bool = False
    default: DefaultValue | None = None
    relation: Relation | None = None
    json_type: JsonTypeDefinition | None = None
    line: int = 0
    column: int = 0

    @property
    def is_column(self) -> bool:
        """True if the field maps to a physical column (scalar type)."""
        return self.field_type in SCALAR_TYPES

    @property
    def is_not_null(self) -> bool:
        """Effective nullability: primary keys are always NOT NULL."""
        return self.is_required or self.is_primary_key

    @property
    def has_unique_constraint(self) -> bool:
        """UNIQUE beyond the primary key, which is unique already."""
        return self.is_unique and not self.is_primary_key

    @property
    def is_autoincrement(self) -> bool:
        return (
            isinstance(self.default, FunctionDefault)
            and self.default.name == DefaultFunction.AUTOINCREMENT
        )


class ModelNode(_Node):
    """A table-equivalent model declaration."""

    name: str
    fields: list[FieldNode] = Field(default_factory=list)
    combined_uniques: list[list[str]] = Field(default_factory=list)
    line: int = 0
    column: int = 0

    def field(self, name: str) -> FieldNode | None:
        """Return the field called *name*, or None."""
        for f in self.fields:
            if f.name == name:
                return f
        return None

    @property
    def columns(self) -> list[FieldNode]:
        """Fields that map to physical columns, in declaration order."""
        return [f for f in self.fields if f.is_column]

    @property
    def primary_key(self) -> FieldNode | None:
        for f in self.fields:
            if f.is_primary_key:
                return f
        return None


class SchemaNode(_Node):
    """Root of the AST: an ordered list of models."""

    models: list[ModelNode] = Field(default_factory=list)
    line: int = 1
    column: int = 1

    def model(self, name: str) -> ModelNode | None:
        """Return the model called *name*, or None."""
        for m in self.models:
            if m.name == name:
                return m
        return None

    @property
    def model_names(self) -> list[str]:
        return [m.name for m in self.models]

"""Python type-declaration generator.

Renders a schema as a Python module of ``TypedDict`` declarations that
application code (query builders, request handlers) can import:

- One ``TypedDict`` per model, named in PascalCase (``user_profile`` ->
  ``UserProfile``)
- Scalars map to ``int`` / ``float`` / ``str`` / ``bool``; ``date`` and
  ``datetime`` are ``str`` (ISO format)
- ``json`` fields with a shape get their own nested ``TypedDict``; shapeless
  ``json`` is ``dict[str, Any]``
- Relation fields reference the target model's class; arrays are ``list[...]``
- Fields that are neither required nor primary keys are ``NotRequired``
- ``ModelName`` is a ``Literal`` of every model name and ``MODELS`` maps
  each name to its class

Usage:
    from dbschema.typegen import write_type_module

    write_type_module(schema, "app/schema_types.py")
"""

import keyword
import logging
from pathlib import Path

from dbschema.dsl.nodes import FieldNode, JsonField, JsonTypeDefinition, ModelNode, SchemaNode

logger = logging.getLogger(__name__)

HEADER = "# AUTO-GENERATED FILE. DO NOT EDIT."

SCALAR_PY_TYPES: dict[str, str] = {
    "int": "int",
    "float": "float",
    "string": "str",
    "boolean": "bool",
    "date": "str",
    "datetime": "str",
}

JSON_LEAF_TYPES: dict[str, str] = {
    "string": "str",
    "number": "float",
    "int": "int",
    "integer": "int",
    "float": "float",
    "boolean": "bool",
    "bool": "bool",
    "date": "str",
    "datetime": "str",
}


def class_name(name: str) -> str:
    """``user_profile`` -> ``UserProfile``."""
    return "".join(part[:1].upper() + part[1:] for part in name.replace("-", "_").split("_"))


def _forward_ref(annotation: str) -> str:
    """Quote *annotation* for the functional ``TypedDict`` form.

    That form is evaluated at import time, so class names declared further
    down must be strings.  ``NotRequired`` stays outside the quotes so the
    key is still optional at runtime.
    """
    prefix = "NotRequired["
    if annotation.startswith(prefix) and annotation.endswith("]"):
        inner = annotation[len(prefix):-1]
        return f'NotRequired["{inner}"]'
    return f'"{annotation}"'


class _ModuleWriter:
    def __init__(self, schema: SchemaNode) -> None:
        self._schema = schema
        self._classes = {m.name: class_name(m.name) for m in schema.models}
        self._blocks: list[str] = []

    def render(self) -> str:
        for model in self._schema.models:
            self._render_model(model)

        lines = [
            HEADER,
            '"""Type declarations generated from the database schema."""',
            "",
            "from __future__ import annotations",
            "",
            "from typing import Any, Literal, NotRequired, TypedDict",
            "",
        ]
        for block in self._blocks:
            lines.extend(["", block, ""])

        lines.append("")
        if self._schema.models:
            names = ", ".join(f'"{m.name}"' for m in self._schema.models)
            lines.append(f"ModelName = Literal[{names}]")
        else:
            lines.append("ModelName = str")
        lines.append("")
        lines.append("MODELS: dict[str, type] = {")
        for model in self._schema.models:
            lines.append(f'    "{model.name}": {self._classes[model.name]},')
        lines.append("}")
        return "\n".join(lines) + "\n"

    def _emit(self, name: str, entries: list[tuple[str, str]]) -> None:
        if any(not key.isidentifier() or keyword.iskeyword(key) for key, _ in entries):
            body = ", ".join(f'"{key}": {_forward_ref(annotation)}' for key, annotation in entries)
            self._blocks.append(f'{name} = TypedDict("{name}", {{{body}}})')
            return

        lines = [f"class {name}(TypedDict):"]
        if not entries:
            lines.append("    pass")
        for key, annotation in entries:
            lines.append(f"    {key}: {annotation}")
        self._blocks.append("\n".join(lines))

    def _render_model(self, model: ModelNode) -> None:
        owner = self._classes[model.name]
        entries: list[tuple[str, str]] = []
        for f in model.fields:
            annotation = self._field_annotation(owner, f)
            if not (f.is_required or f.is_primary_key):
                annotation = f"NotRequired[{annotation}]"
            entries.append((f.name, annotation))
        self._emit(owner, entries)

    def _field_annotation(self, owner: str, f: FieldNode) -> str:
        if f.field_type == "json":
            if f.json_type is not None:
                inner = self._render_shape(f"{owner}{class_name(f.name)}Shape", f.json_type)
                return f"list[{inner}]" if f.json_type.is_array or f.is_array else inner
            return "list[dict[str, Any]]" if f.is_array else "dict[str, Any]"

        if f.field_type in SCALAR_PY_TYPES:
            base = SCALAR_PY_TYPES[f.field_type]
        elif f.field_type in self._classes:
            base = self._classes[f.field_type]
        else:
            logger.debug("Unknown type '%s' for field '%s'; using Any", f.field_type, f.name)
            base = "Any"
        return f"list[{base}]" if f.is_array else base

    def _render_shape(self, name: str, shape: JsonTypeDefinition) -> str:
        entries = [(entry.name, self._json_annotation(name, entry)) for entry in shape.fields]
        self._emit(name, entries)
        return name

    def _json_annotation(self, parent: str, entry: JsonField) -> str:
        if entry.shape is not None:
            annotation = self._render_shape(f"{parent}{class_name(entry.name)}", entry.shape)
        else:
            annotation = JSON_LEAF_TYPES.get(entry.type_name.lower(), "Any")
        if entry.is_array:
            annotation = f"list[{annotation}]"
        if entry.optional:
            annotation = f"NotRequired[{annotation} | None]"
        return annotation


def generate_type_module(schema: SchemaNode) -> str:
    """Render *schema* as Python source text."""
    return _ModuleWriter(schema).render()


def write_type_module(schema: SchemaNode, path: str | Path) -> Path:
    """Render *schema* and overwrite *path* with the result."""
    output = Path(path)
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(generate_type_module(schema), encoding="utf-8")
    logger.info("Wrote type declarations to %s", output)
    return output

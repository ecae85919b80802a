"""Parser for the raw ``{ ... }`` block that follows a ``json`` field type.

The lexer hands the block over verbatim; this module turns it into a
``JsonTypeDefinition``.  The block uses a small TypeScript-like syntax:

    {
      description: string
      tags: string[]
      calories?: number
      origin: { country: string, region?: string }
    }

Entries are separated by newlines, commas or semicolons.  ``?`` marks an
optional (nullable) entry, ``[]`` an array, and a nested ``{}`` an object.
"""

import re

from dbschema.dsl.nodes import JsonField, JsonTypeDefinition
from dbschema.errors import SchemaSyntaxError

_TOKEN_RE = re.compile(
    r"(?P<space>\s+)|(?P<word>[A-Za-z_][A-Za-z0-9_]*)|(?P<punct>[{}\[\]:?,;])"
)


class _ShapeParser:
    def __init__(self, raw: str, line: int, column: int) -> None:
        self._raw = raw
        self._line = line
        self._column = column
        self._tokens = self._scan()
        self._index = 0

    def _position(self, offset: int) -> tuple[int, int]:
        """Translate an offset in the raw block to a source line/column."""
        before = self._raw[:offset]
        newlines = before.count("\n")
        if newlines == 0:
            return self._line, self._column + offset
        return self._line + newlines, offset - before.rfind("\n")

    def _scan(self) -> list[tuple[str, int]]:
        tokens: list[tuple[str, int]] = []
        offset = 0
        while offset < len(self._raw):
            match = _TOKEN_RE.match(self._raw, offset)
            if match is None:
                line, column = self._position(offset)
                raise SchemaSyntaxError(
                    f"Unexpected character '{self._raw[offset]}' in json type block",
                    line,
                    column,
                )
            if match.lastgroup != "space":
                tokens.append((match.group(), offset))
            offset = match.end()
        return tokens

    def _peek(self) -> str:
        return self._tokens[self._index][0] if self._index < len(self._tokens) else ""

    def _error(self, message: str) -> SchemaSyntaxError:
        offset = (
            self._tokens[self._index][1]
            if self._index < len(self._tokens)
            else len(self._raw)
        )
        line, column = self._position(offset)
        return SchemaSyntaxError(message, line, column)

    def _expect(self, value: str) -> None:
        if self._peek() != value:
            raise self._error(f"Expected '{value}' in json type block")
        self._index += 1

    def _expect_word(self, what: str) -> str:
        value = self._peek()
        if not value or not (value[0].isalpha() or value[0] == "_"):
            raise self._error(f"Expected {what} in json type block")
        self._index += 1
        return value

    def parse(self, is_array: bool) -> JsonTypeDefinition:
        fields = self._parse_object()
        if self._index != len(self._tokens):
            raise self._error("Unexpected content after json type block")
        return JsonTypeDefinition(
            raw=self._raw,
            is_array=is_array,
            fields=fields,
            line=self._line,
            column=self._column,
        )

    def _parse_object(self) -> list[JsonField]:
        self._expect("{")
        fields: list[JsonField] = []
        seen: set[str] = set()
        while self._peek() != "}":
            if not self._peek():
                raise self._error("Unterminated json type block")
            if self._peek() in (",", ";"):
                self._index += 1
                continue
            field = self._parse_entry()
            if field.name in seen:
                raise self._error(f"Duplicate json key '{field.name}'")
            seen.add(field.name)
            fields.append(field)
        self._expect("}")
        return fields

    def _parse_entry(self) -> JsonField:
        name = self._expect_word("key name")
        optional = False
        if self._peek() == "?":
            optional = True
            self._index += 1
        self._expect(":")

        shape: JsonTypeDefinition | None = None
        if self._peek() == "{":
            start = self._tokens[self._index][1]
            line, column = self._position(start)
            nested = self._parse_object()
            end = self._tokens[self._index - 1][1] + 1
            shape = JsonTypeDefinition(
                raw=self._raw[start:end], fields=nested, line=line, column=column
            )
            type_name = "object"
        else:
            type_name = self._expect_word("type name")

        is_array = False
        if self._peek() == "[":
            self._index += 1
            self._expect("]")
            is_array = True
            if shape is not None:
                shape = shape.model_copy(update={"is_array": True})

        return JsonField(
            name=name,
            type_name=type_name,
            optional=optional,
            is_array=is_array,
            shape=shape,
        )


def parse_json_shape(
    raw: str, line: int, column: int, is_array: bool = False
) -> JsonTypeDefinition:
    """Parse a raw json type block into a ``JsonTypeDefinition``.

    Args:
        raw: The block text including the outer braces.
        line: Source line of the opening brace.
        column: Source column of the opening brace.
        is_array: True when the field was declared as ``json[]``.

    Raises:
        SchemaSyntaxError: If the block is malformed; the position points
            into the original schema source.
    """
    return _ShapeParser(raw, line, column).parse(is_array)

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Union

"""DecodedRow model and the closed JSON value variant.

A DecodedRow is one parsed JSONL line: column name -> JSON value. Values are
plain json.loads output; JsonKind is the closed set of shapes they can take,
and kind_of() classifies a value exhaustively so type inference can match on
it.
"""

__all__ = [
    "DecodedRow",
    "JsonKind",
    "JsonValue",
    "kind_of",
]

JsonValue = Union[None, bool, int, float, str, dict[str, Any], list[Any]]


class JsonKind(str, Enum):
    NULL = "null"
    BOOLEAN = "boolean"
    INTEGER = "integer"
    FLOAT = "float"
    STRING = "string"
    OBJECT = "object"
    ARRAY = "array"


def kind_of(value: JsonValue) -> JsonKind:
    """Classify a decoded JSON value.

    bool is tested before int because bool is an int subclass in Python.
    """
    if value is None:
        return JsonKind.NULL
    if isinstance(value, bool):
        return JsonKind.BOOLEAN
    if isinstance(value, int):
        return JsonKind.INTEGER
    if isinstance(value, float):
        return JsonKind.FLOAT
    if isinstance(value, str):
        return JsonKind.STRING
    if isinstance(value, dict):
        return JsonKind.OBJECT
    if isinstance(value, list):
        return JsonKind.ARRAY
    raise TypeError(f"not a JSON value: {type(value).__name__}")


@dataclass(frozen=True)
class DecodedRow:
    """One decoded JSONL line.

    line_number is 1-based and counts blank lines, so it points at the line
    in the source file.
    """
    line_number: int
    values: dict[str, JsonValue]

    def keys(self) -> list[str]:
        return list(self.values.keys())

    def get(self, column: str) -> JsonValue:
        return self.values.get(column)

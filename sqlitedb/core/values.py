"""
Typed cell values shared by records and meta trees.
"""

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any

INT32_MIN = -(2 ** 31)
INT32_MAX = 2 ** 31 - 1


class ValueKind(Enum):
    """Closed set of value kinds a cell can hold."""
    NULL = "null"
    INTEGER = "integer"
    INTEGER64 = "integer64"
    FLOAT = "float"
    TEXT = "text"
    BOOLEAN = "boolean"
    BLOB = "blob"
    DATE = "date"


INTEGER_KINDS = (ValueKind.INTEGER, ValueKind.INTEGER64)


@dataclass(frozen=True)
class TypedValue:
    """One cell's content, tagged with its kind."""

    kind: ValueKind
    """The variant tag"""

    value: Any = None
    """Native payload (None for NULL)"""

    @classmethod
    def null(cls) -> 'TypedValue':
        return cls(ValueKind.NULL)

    @classmethod
    def integer(cls, value: int) -> 'TypedValue':
        """Tag an int as INTEGER when it fits in 32 bits, INTEGER64 otherwise."""
        if INT32_MIN <= value <= INT32_MAX:
            return cls(ValueKind.INTEGER, int(value))
        return cls(ValueKind.INTEGER64, int(value))

    @classmethod
    def from_native(cls, value: Any) -> 'TypedValue':
        """Wrap a plain Python value. Unknown types are stored as their text."""
        if value is None:
            return cls.null()
        if isinstance(value, TypedValue):
            return value
        # bool first, it is a subclass of int
        if isinstance(value, bool):
            return cls(ValueKind.BOOLEAN, value)
        if isinstance(value, int):
            return cls.integer(value)
        if isinstance(value, float):
            return cls(ValueKind.FLOAT, value)
        if isinstance(value, str):
            return cls(ValueKind.TEXT, value)
        if isinstance(value, (bytes, bytearray, memoryview)):
            return cls(ValueKind.BLOB, bytes(value))
        if isinstance(value, datetime):
            return cls(ValueKind.DATE, value)
        if isinstance(value, date):
            return cls(ValueKind.DATE, datetime(value.year, value.month, value.day))
        return cls(ValueKind.TEXT, str(value))

    @property
    def is_null(self) -> bool:
        return self.kind is ValueKind.NULL

    @property
    def is_integer(self) -> bool:
        return self.kind in INTEGER_KINDS

    def to_native(self) -> Any:
        return self.value

    def render(self) -> str:
        """Canonical text form used for signatures, logging and coercion."""
        if self.kind is ValueKind.NULL:
            return "nil"
        if self.kind is ValueKind.BOOLEAN:
            return "true" if self.value else "false"
        if self.kind is ValueKind.FLOAT:
            return repr(self.value)
        if self.kind is ValueKind.BLOB:
            return self.value.hex()
        if self.kind is ValueKind.DATE:
            return self.value.isoformat()
        return str(self.value)

    def to_json_value(self) -> Any:
        """Value as it appears inside a JSON document."""
        if self.kind in (ValueKind.BLOB, ValueKind.DATE):
            return self.render()
        return self.value

    def __str__(self) -> str:
        return self.render()

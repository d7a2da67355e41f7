"""
Row sources feed one positioned row into Record.decode().
They report columns and values for the current row only and never advance.
"""

import sqlite3
from abc import ABC, abstractmethod
from datetime import date
from typing import Any, Dict, Optional, Sequence

from .values import ValueKind


def kind_of(value: Any) -> ValueKind:
    """Storage class of a value as sqlite3 hands it back."""
    if value is None:
        return ValueKind.NULL
    if isinstance(value, bool):
        return ValueKind.BOOLEAN
    if isinstance(value, int):
        return ValueKind.INTEGER
    if isinstance(value, float):
        return ValueKind.FLOAT
    if isinstance(value, str):
        return ValueKind.TEXT
    if isinstance(value, (bytes, bytearray, memoryview)):
        return ValueKind.BLOB
    if isinstance(value, date):
        return ValueKind.DATE
    return ValueKind.TEXT


class IRowSource(ABC):
    """Abstract interface for the row currently positioned in a result."""

    @abstractmethod
    def column_count(self) -> int:
        pass

    @abstractmethod
    def column_name(self, index: int) -> str:
        pass

    @abstractmethod
    def is_null(self, index: int) -> bool:
        pass

    @abstractmethod
    def column_type(self, index: int) -> ValueKind:
        """Type the source reports for the column in the current row."""
        pass

    @abstractmethod
    def value(self, index: int) -> Any:
        pass


class SQLiteRowSource(IRowSource):
    """Current row of a sqlite3 cursor.

    `row` may be None when the statement produced no rows; the column
    names are still available from the cursor description.
    """

    def __init__(self, cursor: sqlite3.Cursor, row: Optional[Sequence[Any]] = None):
        self._names = [column[0] for column in (cursor.description or [])]
        self._row = row

    def column_count(self) -> int:
        return len(self._names)

    def column_name(self, index: int) -> str:
        return self._names[index]

    def is_null(self, index: int) -> bool:
        return self._row is None or self._row[index] is None

    def column_type(self, index: int) -> ValueKind:
        if self._row is None:
            return ValueKind.NULL
        return kind_of(self._row[index])

    def value(self, index: int) -> Any:
        if self._row is None:
            return None
        return self._row[index]


class MappingRowSource(IRowSource):
    """Synthetic row built from a plain dict (insertion order = column order)."""

    def __init__(self, data: Dict[str, Any]):
        self._names = list(data.keys())
        self._values = list(data.values())

    def column_count(self) -> int:
        return len(self._names)

    def column_name(self, index: int) -> str:
        return self._names[index]

    def is_null(self, index: int) -> bool:
        return self._values[index] is None

    def column_type(self, index: int) -> ValueKind:
        return kind_of(self._values[index])

    def value(self, index: int) -> Any:
        return self._values[index]

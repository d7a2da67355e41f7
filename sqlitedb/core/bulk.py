"""
Row buffer for bulk SQL operations.
"""

from typing import Any, List


class BulkData:
    """Collects parameter rows for SQLiteDatabase.bulk_transaction().

    Add the values of one row with add(), then push_row() before starting
    the next one.
    """

    def __init__(self):
        self._rows: List[List[Any]] = []
        self._current: List[Any] = []

    def add(self, *values: Any) -> None:
        self._current.extend(values)

    def push_row(self) -> None:
        self._rows.append(self._current)
        self._current = []

    @property
    def all_data(self) -> List[List[Any]]:
        return self._rows

    def clear(self) -> None:
        self._current = []
        self._rows = []

    def __len__(self) -> int:
        return len(self._rows)

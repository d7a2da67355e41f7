"""
Record model - one row of named, case-insensitively addressed, typed values.

A Record is filled by decoding the row a row source is positioned on, or
created empty / columns-only for manual population. It tracks two kinds
of change: the dirty flag (an assignment was applied) and the content
signature (the rendered values differ from the decoded baseline).
"""

import json
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterator, List, Optional

from .accessor import Accessor, fold_key, try_coerce
from .config import ALLOW_NEW_KEYS
from .crypto import ICryptoProvider
from .row_source import IRowSource, MappingRowSource
from .values import TypedValue, ValueKind
from ..util.logging import logger


class IRecordChangeHandler(ABC):
    """Abstract interface for observing (and vetoing) column assignments."""

    @abstractmethod
    def before_value_change(self, column: str, new_value: Any) -> bool:
        """Return False to block the assignment."""
        pass

    @abstractmethod
    def after_value_change(self, column: str, new_value: Any) -> None:
        pass


def _decode_value(source: IRowSource, index: int) -> TypedValue:
    # The null check wins over whatever type the source reports
    if source.is_null(index):
        return TypedValue.null()

    kind = source.column_type(index)
    raw = source.value(index)
    if kind in (ValueKind.INTEGER, ValueKind.INTEGER64):
        return TypedValue.integer(int(raw))
    if kind is ValueKind.FLOAT:
        return TypedValue(ValueKind.FLOAT, float(raw))
    if kind is ValueKind.TEXT:
        return TypedValue(ValueKind.TEXT, str(raw))
    if kind is ValueKind.BLOB:
        return TypedValue(ValueKind.BLOB, bytes(raw))
    if kind in (ValueKind.BOOLEAN, ValueKind.DATE):
        return TypedValue.from_native(raw)
    return TypedValue.null()


class Record(Accessor):
    """Ordered, case-insensitive column -> TypedValue mapping."""

    def __init__(self, row_source: Optional[IRowSource] = None, columns_only: bool = False,
                 allow_new_keys: bool = ALLOW_NEW_KEYS,
                 change_handler: Optional[IRecordChangeHandler] = None):
        self._data: Dict[str, TypedValue] = {}
        self._key_map: Dict[str, str] = {}
        self._signature = ""
        self._is_dirty = False
        self.allow_new_keys = allow_new_keys
        self.change_handler = change_handler

        if row_source is not None:
            self.decode(row_source, columns_only)
        else:
            self._signature = self._compute_signature()

    @classmethod
    def from_mapping(cls, data: Dict[str, Any], **kwargs) -> 'Record':
        """Decode a synthetic row from a dict."""
        return cls(MappingRowSource(data), **kwargs)

    def decode(self, row_source: IRowSource, columns_only: bool = False) -> None:
        """Replace the whole record with the row the source is positioned on."""
        self._data = {}
        self._key_map = {}
        self._is_dirty = False

        for index in range(row_source.column_count()):
            # Repeated names (any case) collapse onto the first slot
            name = self._key_map.setdefault(fold_key(row_source.column_name(index)),
                                            row_source.column_name(index))
            if columns_only:
                self._data[name] = TypedValue.null()
            else:
                self._data[name] = _decode_value(row_source, index)

        self._signature = self._compute_signature()

    def clear(self) -> None:
        self._data = {}
        self._key_map = {}
        self._is_dirty = False
        self._signature = self._compute_signature()

    def clone(self) -> 'Record':
        """Independent copy of values, key map, baseline signature and dirty flag."""
        copy = Record(allow_new_keys=self.allow_new_keys)
        copy._data = dict(self._data)
        copy._key_map = dict(self._key_map)
        copy._signature = self._signature
        copy._is_dirty = self._is_dirty
        return copy

    def _map_id(self, name: str) -> Optional[str]:
        return self._key_map.get(fold_key(name))

    def has_key(self, name: str) -> bool:
        return fold_key(name) in self._key_map

    def _lookup(self, name: str) -> TypedValue:
        return self._data[self._map_id(name)]

    def value(self, name: str) -> TypedValue:
        """The stored TypedValue (NULL for unknown columns)."""
        canonical = self._map_id(name)
        if canonical is None:
            return TypedValue.null()
        return self._data[canonical]

    def is_null(self, name: str) -> bool:
        return self.value(name).is_null

    def set(self, name: str, value: Any, crypto: Optional[ICryptoProvider] = None) -> None:
        """Assign a column.

        Unknown columns are ignored unless allow_new_keys is on. A change
        handler may veto the assignment, in which case nothing changes and
        the dirty flag is left alone. An applied assignment always marks
        the record dirty, even when the value is unchanged.
        """
        canonical = self._map_id(name)
        if canonical is None:
            if not self.allow_new_keys:
                return
            canonical = name

        ok, stored = self._conceal(name, value, crypto)
        if not ok:
            return

        if self.change_handler is not None:
            if not self.change_handler.before_value_change(canonical, value):
                logger.log_record_change(canonical, stored, status="vetoed")
                return

        self._key_map[fold_key(canonical)] = canonical
        self._data[canonical] = TypedValue.from_native(stored)
        self._is_dirty = True
        logger.log_record_change(canonical, stored)

        if self.change_handler is not None:
            self.change_handler.after_value_change(canonical, value)

    def get_null(self, name: str, hint: Any = None) -> Any:
        """Like get(), but NULL, missing or unconvertible values give None."""
        if not self.has_key(name):
            return None
        ok, value = try_coerce(self._lookup(name), hint)
        return value if ok else None

    def get_at(self, index: int, default: Any = None) -> Any:
        """Value at `index` in columns().

        Source columns whose names differ only in case share one slot, so
        the index counts distinct columns, not source positions.
        """
        columns = self.columns()
        if not 0 <= index < len(columns):
            return default
        return self.get(columns[index], default)

    def get_null_at(self, index: int, hint: Any = None) -> Any:
        columns = self.columns()
        if not 0 <= index < len(columns):
            return None
        return self.get_null(columns[index], hint)

    def column_index(self, name: str) -> Optional[int]:
        canonical = self._map_id(name)
        if canonical is None:
            return None
        return self.columns().index(canonical)

    def text(self, name: str, default: str = "") -> str:
        """Canonical text of a column, or `default` when missing or NULL."""
        value = self.value(name)
        if value.is_null:
            return default
        return value.render()

    def columns(self, *excluding: str) -> List[str]:
        """Canonical column names in source order, minus `excluding` (any case)."""
        skip = {fold_key(name) for name in excluding}
        return [name for name in self._data if fold_key(name) not in skip]

    def _compute_signature(self) -> str:
        pieces = []
        for name in sorted(self._data, key=str.lower):
            key, value = name.lower(), self._data[name]
            if value.is_null:
                pieces.append(f"{key}\tnil")
            else:
                pieces.append(f'{key}\t"{value.render()}"')
        return "\t".join(pieces)

    def signature(self, original: bool = False) -> str:
        """Baseline signature captured at decode time, or the current one."""
        if original:
            return self._signature
        return self._compute_signature()

    @property
    def is_dirty(self) -> bool:
        # An assignment was applied; compare signatures for real differences
        return self._is_dirty

    def reset_dirty(self) -> None:
        self._is_dirty = False

    @property
    def is_empty(self) -> bool:
        return len(self._data) == 0

    def to_dict(self) -> Dict[str, Any]:
        return {name: value.to_json_value() for name, value in self._data.items()}

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2)

    def __getitem__(self, name: str) -> str:
        return self.get(name, "")

    def __setitem__(self, name: str, value: Any) -> None:
        self.set(name, value)

    def __len__(self) -> int:
        return len(self._data)

    def __iter__(self) -> Iterator[str]:
        return iter(self.columns())

    def __repr__(self) -> str:
        return f"Record({self.signature()!r}, dirty={self._is_dirty})"


def records_columns(records: List[Record]) -> List[str]:
    """Columns of the first record of a result set."""
    if records:
        return records[0].columns()
    return []


def records_to_json(records: List[Record]) -> str:
    return json.dumps({"rows": [record.to_dict() for record in records]})

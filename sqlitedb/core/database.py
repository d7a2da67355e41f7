"""
SQLite access layer - queries into Records, write-back of Records, bulk writes.

A SQLiteDatabase is an explicit handle; every operation opens its own
connection and closes it when done. Errors from sqlite3 are logged and
turned into empty / False / -1 results instead of being raised.
"""

import sqlite3
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import date
from typing import Any, Callable, Dict, Generator, List, Optional

from pydantic import ValidationError

from .bulk import BulkData
from .config import DB_PATH, debug_enabled, ensure_db_directory
from .meta import MetaNode
from .record import Record
from .row_source import SQLiteRowSource
from .schemas import IndexRequest, WriteBackRequest
from .values import TypedValue
from ..util.logging import audit_event, logger


class IRowUpdateHandler(ABC):
    """Abstract interface notified after a record has been written back."""

    @abstractmethod
    def row_added(self, record: Record) -> None:
        pass

    @abstractmethod
    def row_updated(self, record: Record) -> None:
        pass


def _unwrap_params(params: Any) -> List[Any]:
    """Flatten nested lists/tuples of parameters."""
    ret = []
    for item in params:
        if isinstance(item, (list, tuple)):
            ret.extend(_unwrap_params(item))
        else:
            ret.append(item)
    return ret


def bind_value(value: Any) -> Any:
    """Convert a Python value into something sqlite3 can bind."""
    if isinstance(value, TypedValue):
        value = value.to_native()
    if isinstance(value, bool):
        return 1 if value else 0
    if isinstance(value, date):
        return value.isoformat()
    if value is None or isinstance(value, (int, float, str, bytes)):
        return value
    return str(value)


def _bind_params(params: Any) -> List[Any]:
    return [bind_value(p) for p in _unwrap_params(params)]


def _quote(name: str) -> str:
    return f"[{name}]"


class SQLiteDatabase:
    """Handle on one SQLite database file."""

    def __init__(self, path: Optional[str] = None):
        self.path = path or DB_PATH
        if self.path != ":memory:":
            ensure_db_directory(self.path)

    @contextmanager
    def connect(self) -> Generator[sqlite3.Connection, None, None]:
        """Get a SQLite database connection."""
        conn = sqlite3.connect(self.path)
        try:
            yield conn
        finally:
            conn.close()

    # Introspection

    def all_tables(self) -> List[str]:
        return self.query_list("SELECT name FROM sqlite_master WHERE type = 'table' ORDER BY name", "")

    def all_indexes(self) -> List[str]:
        return self.query_list("SELECT name FROM sqlite_master WHERE type = 'index' ORDER BY name", "")

    def table_exists(self, name: str) -> bool:
        return self.query_value(
            "SELECT COUNT(*) FROM sqlite_master WHERE type = 'table' AND name = ?", 0, name) > 0

    def index_exists(self, name: str) -> bool:
        return self.query_value(
            "SELECT COUNT(*) FROM sqlite_master WHERE type = 'index' AND name = ?", 0, name) > 0

    def column_info(self, table: str) -> List[str]:
        return self.query_list(f"PRAGMA table_info({_quote(table)})", "", column="name")

    def get_column_details(self, table: str) -> Dict[str, str]:
        """Column name -> declared type."""
        details = {}
        for row in self.query_multi_row(f"PRAGMA table_info({_quote(table)})"):
            if not row.is_null("name"):
                details[row.get("name", "")] = row.get("type", "")
        return details

    # Schema helpers

    def assert_index(self, index_name: str, create_sql: str) -> None:
        if not self.index_exists(index_name):
            self.execute(create_sql)

    def assert_index_on(self, index_name: str, table: str, fields: List[str]) -> bool:
        try:
            request = IndexRequest(index_name=index_name, table=table, fields=fields)
        except ValidationError as e:
            logger.error(f"Invalid index request for '{index_name}': {e}")
            return False
        columns = ", ".join(_quote(f) for f in request.fields)
        self.assert_index(request.index_name,
                          f"CREATE INDEX {_quote(request.index_name)} ON {_quote(request.table)} ({columns})")
        return True

    def assert_column(self, table: str, name_and_types: Dict[str, str]) -> None:
        """Add any of the given columns the table does not have yet."""
        existing = {name.lower() for name in self.column_info(table)}
        for name, column_type in name_and_types.items():
            if name.lower() not in existing:
                self.execute(f"ALTER TABLE {_quote(table)} ADD COLUMN {_quote(name)} {column_type}")

    # Queries

    def query_value(self, sql: str, default: Any, *params: Any) -> Any:
        """First column of the first row, coerced to the type of `default`."""
        try:
            with self.connect() as conn:
                cursor = conn.execute(sql, _bind_params(params))
                row = cursor.fetchone()
                if row is None:
                    return default
                return Record(SQLiteRowSource(cursor, row)).get_at(0, default)
        except sqlite3.Error as e:
            logger.log_sql_error("query_value", sql, e)
            return default

    def query_list(self, sql: str, hint: Any, *params: Any, column: Optional[str] = None) -> List[Any]:
        """One value per row from `column` (or the first column), coerced like `hint`."""
        ret = []
        record = Record()
        try:
            with self.connect() as conn:
                cursor = conn.execute(sql, _bind_params(params))
                for row in cursor:
                    record.decode(SQLiteRowSource(cursor, row))
                    if column:
                        ret.append(record.get(column, hint))
                    else:
                        ret.append(record.get_at(0, hint))
        except sqlite3.Error as e:
            logger.log_sql_error("query_list", sql, e)
        return ret

    def collect_column_data_delimited(self, sql: str, hint: Any, *params: Any,
                                      column: Optional[str] = None, delimiter: str = ",") -> str:
        return delimiter.join(str(v) for v in self.query_list(sql, hint, *params, column=column))

    def query_multi_row(self, sql: str, *params: Any) -> List[Record]:
        """All rows as independent Records.

        A statement that returns no rows yields a single columns-only
        Record so callers can still discover the column names.
        """
        try:
            with self.connect() as conn:
                cursor = conn.execute(sql, _bind_params(params))
                rows = cursor.fetchall()
                if not rows:
                    if cursor.description is None:
                        return []
                    return [Record(SQLiteRowSource(cursor), columns_only=True)]
                return [Record(SQLiteRowSource(cursor, row)) for row in rows]
        except sqlite3.Error as e:
            logger.log_sql_error("query_multi_row", sql, e)
            return []

    def query_single_row(self, sql: str, *params: Any) -> Record:
        rows = self.query_multi_row(sql, *params)
        if rows:
            return rows[0]
        return Record()

    def multi_row(self, row_handler: Callable[[Record], None], sql: str, *params: Any) -> bool:
        """Stream rows through `row_handler` one at a time.

        The same Record instance is decoded for every row; clone() it to
        keep a row after the handler returns.
        """
        record = Record()
        try:
            with self.connect() as conn:
                cursor = conn.execute(sql, _bind_params(params))
                row = cursor.fetchone()
                if row is None:
                    record.decode(SQLiteRowSource(cursor), columns_only=True)
                    row_handler(record)
                while row is not None:
                    record.decode(SQLiteRowSource(cursor, row))
                    row_handler(record)
                    row = cursor.fetchone()
        except sqlite3.Error as e:
            logger.log_sql_error("multi_row", sql, e)
            return False
        return True

    def query_rows_as_json(self, sql: str, *params: Any) -> str:
        """{"rowcount": n, "rows": [...]} with every value as text ("{NULL}" for nulls)."""
        rows = []
        record = Record()
        try:
            with self.connect() as conn:
                cursor = conn.execute(sql, _bind_params(params))
                for row in cursor:
                    record.decode(SQLiteRowSource(cursor, row))
                    pairs = []
                    for column in record.columns():
                        pairs.extend([column, None if record.is_null(column) else record.text(column)])
                    rows.append(MetaNode.pairs_to_json(*pairs))
        except sqlite3.Error as e:
            logger.log_sql_error("query_rows_as_json", sql, e)
            return ""
        return f'{{"rowcount": {len(rows)}, "rows": [{", ".join(rows)}]}}'

    def new_row(self, table: str) -> Record:
        """Columns-only Record shaped like `table`, ready to fill and write back."""
        return self.query_single_row(f"SELECT * FROM {_quote(table)} LIMIT 0")

    # Writes

    def execute(self, sql: str, *params: Any) -> int:
        """Run one statement and commit. Returns the last inserted row id, or -1 on error."""
        if debug_enabled():
            logger.log_sql_operation("execute", sql)
        try:
            with self.connect() as conn:
                cursor = conn.execute(sql, _bind_params(params))
                conn.commit()
                return cursor.lastrowid or 0
        except sqlite3.Error as e:
            logger.log_sql_error("execute", sql, e)
            return -1

    def update_table_from_record(self, record: Record, source_table: str, id_column: str,
                                 update_handler: Optional[IRowUpdateHandler] = None) -> bool:
        """Write a Record back to `source_table`.

        A NULL id, or an id not present in the table, means INSERT; anything
        else is an UPDATE of every other column. After an insert the
        generated row id is written back into the record.
        """
        try:
            request = WriteBackRequest(source_table=source_table, id_column=id_column)
        except ValidationError as e:
            logger.error(f"Write-back request rejected: {e}")
            return False

        table = _quote(request.source_table)
        id_name = _quote(request.id_column)

        is_insert = record.is_null(request.id_column)
        if not is_insert:
            is_insert = self.query_value(f"SELECT COUNT(*) FROM {table} WHERE {id_name} = ?", 0,
                                         record.get(request.id_column)) < 1

        columns = record.columns(request.id_column)
        if is_insert and not record.is_null(request.id_column):
            # Keep a caller supplied id
            columns.insert(0, record.columns()[record.column_index(request.id_column)])
        values = [record.get(c) for c in columns]

        if is_insert:
            if columns:
                placeholders = ", ".join("?" for _ in columns)
                sql = f"INSERT INTO {table} ({', '.join(_quote(c) for c in columns)}) VALUES ({placeholders})"
            else:
                sql = f"INSERT INTO {table} DEFAULT VALUES"
        else:
            if not columns:
                return True
            assignments = ", ".join(f"{_quote(c)} = ?" for c in columns)
            sql = f"UPDATE {table} SET {assignments} WHERE {id_name} = ?"
            values.append(record.get(request.id_column))

        if debug_enabled():
            logger.log_sql_operation("write_back", sql)
        try:
            with self.connect() as conn:
                cursor = conn.execute(sql, _bind_params(values))
                conn.commit()
                new_id = cursor.lastrowid
        except sqlite3.Error as e:
            logger.log_sql_error("write_back", sql, e)
            return False

        if is_insert:
            record.set(request.id_column, new_id)

        audit_event(
            event_type="record.write_back",
            identifiers={"table": request.source_table, "id_column": request.id_column,
                         "mode": "insert" if is_insert else "update"},
            payload={"columns": columns}
        )

        if update_handler is not None:
            if is_insert:
                update_handler.row_added(record)
            else:
                update_handler.row_updated(record)
        return True

    def bulk_transaction(self, sql: str, data: BulkData) -> bool:
        """Run `sql` once per pushed row of `data` inside one transaction."""
        if len(data) == 0:
            return False
        try:
            with self.connect() as conn:
                conn.execute("BEGIN IMMEDIATE")
                try:
                    conn.executemany(sql, [_bind_params(row) for row in data.all_data])
                    conn.commit()
                except sqlite3.Error:
                    conn.rollback()
                    raise
        except sqlite3.Error as e:
            logger.log_sql_error("bulk_transaction", sql, e)
            return False
        logger.log_sql_operation("bulk_transaction", sql, details={"rows": len(data)})
        return True


"""
Record and meta tree data model with a thin SQLite access layer.
"""

# Package initialization for core module
from .values import TypedValue, ValueKind
from .accessor import Accessor
from .crypto import ICryptoProvider, AESCryptoProvider, CryptoError
from .row_source import IRowSource, SQLiteRowSource, MappingRowSource
from .record import Record, IRecordChangeHandler, records_columns, records_to_json
from .meta import MetaNode
from .bulk import BulkData
from .database import SQLiteDatabase, IRowUpdateHandler

__all__ = [
    'TypedValue',
    'ValueKind',
    'Accessor',
    'ICryptoProvider',
    'AESCryptoProvider',
    'CryptoError',
    'IRowSource',
    'SQLiteRowSource',
    'MappingRowSource',
    'Record',
    'IRecordChangeHandler',
    'records_columns',
    'records_to_json',
    'MetaNode',
    'BulkData',
    'SQLiteDatabase',
    'IRowUpdateHandler'
]

"""
Request models validated before statements are built.
"""

from typing import List

from pydantic import BaseModel, field_validator


class WriteBackRequest(BaseModel):
    source_table: str
    id_column: str

    @field_validator('source_table')
    @classmethod
    def table_must_not_be_empty(cls, v):
        if not v.strip():
            raise ValueError('source_table cannot be empty')
        return v.strip()

    @field_validator('id_column')
    @classmethod
    def id_column_must_not_be_empty(cls, v):
        if not v.strip():
            raise ValueError('id_column cannot be empty')
        return v.strip()


class IndexRequest(BaseModel):
    index_name: str
    table: str
    fields: List[str]

    @field_validator('index_name', 'table')
    @classmethod
    def name_must_not_be_empty(cls, v):
        if not v.strip():
            raise ValueError('name cannot be empty')
        return v.strip()

    @field_validator('fields')
    @classmethod
    def fields_must_not_be_empty(cls, v):
        if not v or any(not f.strip() for f in v):
            raise ValueError('fields must be a non-empty list of column names')
        return v

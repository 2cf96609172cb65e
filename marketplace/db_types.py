"""Database-agnostic type definitions for SQLAlchemy models.

This module provides type definitions that work with both SQLite and PostgreSQL,
plus the persistence boundary for structured snapshot columns.
"""
from enum import IntEnum
from typing import Optional, Type

from pydantic import BaseModel
from sqlalchemy import JSON, Integer, Uuid
from sqlalchemy.types import TypeDecorator

# Use JSON instead of JSONB for cross-database compatibility
# JSONB is PostgreSQL-specific, JSON works with both SQLite and PostgreSQL
JSONType = JSON

# UUID type that works with both databases (native on PostgreSQL, CHAR(32) on SQLite)
UUIDType = Uuid


class IntEnumType(TypeDecorator):
    """Stores an IntEnum as its integer code and loads it back as the enum member."""

    impl = Integer
    cache_ok = True

    def __init__(self, enum_class: Type[IntEnum], *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.enum_class = enum_class

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return int(self.enum_class(value))

    def process_result_value(self, value, dialect) -> Optional[IntEnum]:
        if value is None:
            return None
        return self.enum_class(value)


class SnapshotJSON(TypeDecorator):
    """
    JSON column holding one Pydantic model, or a list of them when many=True.

    Values are plain model instances in Python and JSON documents in the
    database; conversion happens only here.
    """

    impl = JSONType
    cache_ok = True

    def __init__(self, model: Type[BaseModel], many: bool = False, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.model = model
        self.many = many

    def _dump(self, item):
        if isinstance(item, BaseModel):
            return item.model_dump(mode="json")
        return self.model.model_validate(item).model_dump(mode="json")

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if self.many:
            return [self._dump(item) for item in value]
        return self._dump(value)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if self.many:
            return [self.model.model_validate(item) for item in value]
        return self.model.model_validate(value)

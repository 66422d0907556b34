"""
Shared SQLAlchemy handle and column types for all models.
"""

from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import JSON
from sqlalchemy.dialects.postgresql import JSONB as PostgresJSONB
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.types import TypeDecorator


class _DeclarativeBase(DeclarativeBase):
    pass


db = SQLAlchemy(model_class=_DeclarativeBase)
Base = db.Model


class JSONBCompatible(TypeDecorator):
    """
    A JSONB type that falls back to JSON for non-PostgreSQL databases (e.g., SQLite in tests).
    """
    impl = JSON
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == 'postgresql':
            return dialect.type_descriptor(PostgresJSONB())
        return dialect.type_descriptor(JSON())

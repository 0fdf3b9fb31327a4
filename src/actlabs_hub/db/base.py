"""
actlabs_hub.db.base

SQLAlchemy declarative base with deterministic constraint names.

Responsibilities:
- Provide the shared DeclarativeBase for `ServerRow` and `EventRow`.
- Name indexes/constraints predictably so Alembic batch migrations on SQLite can
  drop and recreate them.
"""

from __future__ import annotations

from sqlalchemy import MetaData
from sqlalchemy.orm import DeclarativeBase

NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class Base(DeclarativeBase):
    metadata = MetaData(naming_convention=NAMING_CONVENTION)

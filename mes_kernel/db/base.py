"""
Module: mes_kernel.db.base
Responsibility: Declarative base and portable column types for all SQLAlchemy
    ORM models of the production board.
Architecture position: Kernel > DB.  This is the lowest-level import target
    within the kernel.  ALL model files import from here.  This module MUST NOT
    import from models/, selectors/, domain/, or outer layers.

Invariants enforced:
    - String primary keys: kanban item and log ids are minted by the domain's
      IdGenerator and stored verbatim; rows created without one get a uuid4.
    - Decimal precision: type_annotation_map maps Python Decimal to
      Numeric(18, 2).  Prices are never stored as float.
    - Timestamps are timezone-aware on every backend (UTCDateTime).

Failure modes:
    - IntegrityError on INSERT of a duplicate id.
    - ValueError from UTCDateTime if a naive datetime is bound.
"""

from datetime import UTC, datetime
from decimal import Decimal
from typing import ClassVar
from uuid import uuid4

from sqlalchemy import DateTime, Integer, Numeric, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware datetime stored as UTC.

    Contract:
        Binds aware datetimes normalised to UTC; loads them back as aware
        UTC datetimes even on backends (SQLite) that drop tzinfo.

    Guarantees:
        - process_bind_param rejects naive datetimes.
        - process_result_value always returns tzinfo=UTC.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            raise ValueError(f"Naive datetime cannot be stored: {value!r}")
        return value.astimezone(UTC)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)


def _new_row_id() -> str:
    return str(uuid4())


class Base(DeclarativeBase):
    """
    Declarative base for all SQLAlchemy models.

    Contract:
        Every ORM model inherits from Base.  Base provides a string primary
        key and a type_annotation_map for consistent column types.

    Guarantees:
        - id is String(64); defaults to a uuid4 string when not supplied.
        - Decimal maps to Numeric(18, 2).
        - datetime maps to UTCDateTime.
    """

    type_annotation_map: ClassVar[dict] = {
        Decimal: Numeric(18, 2),
        datetime: UTCDateTime(),
        int: Integer,
    }

    id: Mapped[str] = mapped_column(
        String(64),
        primary_key=True,
        default=_new_row_id,
    )

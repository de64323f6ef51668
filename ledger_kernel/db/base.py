"""
Module: ledger_kernel.db.base
Responsibility: Declarative base classes for every ledger ORM model: the UUID
    primary key convention, the shared type annotation map and the
    TrackedBase audit mixin.
Architecture position: Kernel > DB.  Lowest-level import target inside the
    kernel.  MUST NOT import from models/, services/, handlers/ or selectors/.

Invariants enforced:
    - Every row is keyed by a uuid4 identifier stored as String(36), so the
      schema is portable between PostgreSQL and SQLite.
    - Python Decimal maps to Numeric(38, 9).  Monetary amounts are never float.
    - TrackedBase records who created a row and when.

Audit relevance:
    created_at/created_by_id identify the origin of every event, journal
    entry and recognition record.  updated_at/updated_by_id are audit
    metadata and may change even on rows that are otherwise frozen.
"""

from datetime import datetime
from decimal import Decimal
from typing import ClassVar
from uuid import UUID as PyUUID, uuid4

from sqlalchemy import BigInteger, DateTime, Numeric, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

# Actor recorded on rows written by automated jobs (sweeps, year-end close).
SYSTEM_ACTOR_ID = PyUUID(int=0)


class UUIDString(TypeDecorator):
    """
    UUID stored as its 36-character string form.

    Guarantees:
        - Binds UUID -> str and loads str -> UUID.
        - cache_ok=True so statements using the type are cacheable.
    """

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return str(value)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return PyUUID(value)


class Base(DeclarativeBase):
    """
    Declarative base for all ledger models.

    Contract:
        Subclasses get a uuid4 ``id`` primary key and consistent column types
        for annotated attributes.
    """

    type_annotation_map: ClassVar[dict] = {
        Decimal: Numeric(38, 9),
        datetime: DateTime(timezone=True),
        PyUUID: UUIDString(),
        int: BigInteger,
    }

    id: Mapped[PyUUID] = mapped_column(
        UUIDString(),
        primary_key=True,
        default=uuid4,
    )


class TrackedBase(Base):
    """
    Abstract base with creation and modification audit columns.

    Guarantees:
        - created_at is set by the database on INSERT.
        - updated_at is refreshed on every UPDATE.
        - created_by_id is required; automated writers use SYSTEM_ACTOR_ID.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    created_by_id: Mapped[PyUUID] = mapped_column(
        UUIDString(),
        nullable=False,
        default=lambda: SYSTEM_ACTOR_ID,
    )

    updated_by_id: Mapped[PyUUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )


UUID = PyUUID

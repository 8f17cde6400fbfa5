"""
Declarative base for the ledger's ORM models.

Column conventions shared by every table:

* primary keys are uuid4 values stored as ``String(36)``;
* ``Decimal`` amounts map to ``Numeric(38, 9)`` (never float);
* timestamps are timezone-aware;
* enums are stored by value in a VARCHAR so SQLite and PostgreSQL agree.

``TrackedBase`` adds who/when columns.  ``updated_at`` and
``updated_by_id`` are bookkeeping and may change even on rows the
immutability guard otherwise freezes.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import ClassVar
from uuid import UUID, uuid4

from sqlalchemy import BigInteger, DateTime, Numeric, String, func
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

MONEY = Numeric(38, 9)


class UUIDString(TypeDecorator):
    """``uuid.UUID`` in Python, ``VARCHAR(36)`` in the database."""

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return None if value is None else str(value)

    def process_result_value(self, value, dialect):
        return None if value is None else UUID(value)


class Base(DeclarativeBase):
    type_annotation_map: ClassVar[dict] = {
        Decimal: MONEY,
        datetime: DateTime(timezone=True),
        UUID: UUIDString(),
        int: BigInteger,
    }

    id: Mapped[UUID] = mapped_column(UUIDString(), primary_key=True, default=uuid4)


class TrackedBase(Base):
    """Base for rows that record who created and last touched them."""

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(server_default=func.now(), onupdate=func.now())
    created_by_id: Mapped[UUID] = mapped_column(UUIDString())
    updated_by_id: Mapped[UUID | None] = mapped_column(UUIDString())


def enum_column(enum_cls: type[Enum], length: int = 20) -> SAEnum:
    """VARCHAR column for a ``str`` Enum; rows load back as enum members."""
    return SAEnum(
        enum_cls,
        native_enum=False,
        length=length,
        values_callable=lambda members: [m.value for m in members],
        validate_strings=True,
    )

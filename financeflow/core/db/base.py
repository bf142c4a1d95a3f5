from datetime import datetime
from typing import Optional

from sqlalchemy import ColumnElement, DateTime, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class BaseModel(Base):
    """Integer id, audit timestamps and soft delete for every table."""

    __abstract__ = True

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True, index=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), onupdate=func.now(), nullable=True
    )
    # Rows are never hard-deleted; readers filter on this
    deleted_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True, default=None
    )

    @classmethod
    def live(cls) -> ColumnElement[bool]:
        """WHERE clause selecting rows that are not soft-deleted."""
        return cls.deleted_at.is_(None)

from __future__ import annotations
from typing import Optional
from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from financeflow.core.db.base import BaseModel


class User(BaseModel):
    """Owner of sync settings, imported transactions and ledger entries"""

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(
        String,
        unique=True,
        nullable=False,
        index=True,
        comment="Login email, also the default linked Gmail account",
    )

    name: Mapped[Optional[str]] = mapped_column(
        String, nullable=True, comment="Optional display name"
    )

    def __repr__(self) -> str:
        return f"<User(email='{self.email}', name='{self.name}')>"

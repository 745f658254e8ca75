"""
Table Model: physical dine-in table and its exclusive session lock.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, CheckConstraint, DateTime, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, BigIntPK


class Table(Base):
    """
    Physical table in the restaurant.

    A table is either free (no owner, no pax, no occupied_at) or held by
    exactly one diner session identified by an opaque token. The check
    constraint keeps the lock fields consistent even for raw UPDATEs.
    """

    # "table" is a reserved SQL keyword
    __tablename__ = "restaurant_table"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    number: Mapped[int] = mapped_column(Integer, nullable=False, unique=True)
    is_occupied: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    pax: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    owner_session_token: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    occupied_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    __table_args__ = (
        CheckConstraint(
            "(is_occupied AND owner_session_token IS NOT NULL AND occupied_at IS NOT NULL)"
            " OR (NOT is_occupied AND owner_session_token IS NULL AND occupied_at IS NULL)",
            name="chk_table_lock_consistent",
        ),
        CheckConstraint("pax >= 0", name="chk_table_pax_non_negative"),
        # Abandoned-table sweep scans occupied tables by age
        Index("ix_table_occupied_at", "is_occupied", "occupied_at"),
    )

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    JSON,
    BigInteger,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    pass


# ---------------------------
# Reference: ft_categories
# ---------------------------


class FtCategory(Base):
    __tablename__ = "ft_categories"

    # Integer identity keeps the ascending-id listing order stable; the import
    # reconciler relies on that order as its tie-break.
    id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True
    )
    name: Mapped[str] = mapped_column(String, nullable=False)
    color: Mapped[str] = mapped_column(String, nullable=False, server_default=text("'gray'"))
    # Free-text labels as they appear in bank exports. Uniqueness across
    # categories is enforced by the store on write, not by the schema (JSON
    # arrays cannot carry a portable unique index).
    aliases: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )

    transactions: Mapped[list[FtTransaction]] = relationship(back_populates="category")


# ---------------------------
# Core: ft_transactions
# ---------------------------


class FtTransaction(Base):
    __tablename__ = "ft_transactions"

    id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True
    )
    description: Mapped[str] = mapped_column(Text, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    category_id: Mapped[int] = mapped_column(
        ForeignKey("ft_categories.id", ondelete="RESTRICT"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )

    category: Mapped[FtCategory] = relationship(back_populates="transactions")

    __table_args__ = (
        Index("ix_ft_transactions_timestamp", "timestamp"),
        Index("ix_ft_transactions_category_id", "category_id"),
    )


__all__ = [
    "Base",
    "FtCategory",
    "FtTransaction",
]

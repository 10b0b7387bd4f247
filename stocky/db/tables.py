"""ORM tables for the reward ledger.

Invariants:
    - rewards.reference_id and journal_entries.reference_id are UNIQUE; the
      constraint, not the application pre-check, is what stops a duplicate
      under concurrent writers
    - journal_entries, journal_postings, rewards and stock_prices are append-only
    - amounts are NUMERIC; money carries paise precision, quantities 6 places
"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    BigInteger, DateTime, ForeignKey, Index, Integer, Numeric, String,
    Text, UniqueConstraint, Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base
from ..timeutil import utcnow

AMOUNT = Numeric(20, 6)
PRICE = Numeric(18, 4)


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)


class Account(Base):
    __tablename__ = "accounts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    kind: Mapped[str] = mapped_column(String(30), nullable=False)


class Reward(Base):
    __tablename__ = "rewards"
    __table_args__ = (
        UniqueConstraint("reference_id", name="uq_rewards_reference_id"),
        Index("ix_rewards_user_awarded", "user_id", "awarded_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id"), nullable=False)
    stock_symbol: Mapped[str] = mapped_column(String(20), nullable=False)
    quantity: Mapped[Decimal] = mapped_column(AMOUNT, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(PRICE, nullable=False)
    reference_id: Mapped[str] = mapped_column(String(128), nullable=False)
    awarded_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)


class JournalEntry(Base):
    __tablename__ = "journal_entries"
    __table_args__ = (
        UniqueConstraint("reference_id", name="uq_journal_entries_reference_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    reference_type: Mapped[str] = mapped_column(String(30), nullable=False)
    reference_id: Mapped[str] = mapped_column(String(128), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    posted_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)

    postings: Mapped[list["JournalPosting"]] = relationship(
        back_populates="entry", lazy="selectin", order_by="JournalPosting.id",
    )


class JournalPosting(Base):
    __tablename__ = "journal_postings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    journal_entry_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("journal_entries.id"), nullable=False, index=True,
    )
    account_id: Mapped[int] = mapped_column(Integer, ForeignKey("accounts.id"), nullable=False)
    amount: Mapped[Decimal] = mapped_column(AMOUNT, nullable=False)
    direction: Mapped[str] = mapped_column(String(6), nullable=False)
    asset_type: Mapped[str] = mapped_column(String(10), nullable=False)
    stock_symbol: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    entry: Mapped[JournalEntry] = relationship(back_populates="postings")


class StockPrice(Base):
    __tablename__ = "stock_prices"
    __table_args__ = (
        Index("ix_stock_prices_symbol_ts", "stock_symbol", "timestamp"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    stock_symbol: Mapped[str] = mapped_column(String(20), nullable=False)
    price: Mapped[Decimal] = mapped_column(PRICE, nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)

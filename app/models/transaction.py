"""
ShopLedger - Transaction Model

A double-entry posting: one debit account, one credit account, one amount.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Numeric, String, Text, Uuid, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import BaseModel, ShopScopedMixin
from app.models.cash_bank import PaymentAccountKind


class TransactionType(str, Enum):
    """Business meaning of a posting."""
    SALE = "SALE"
    PURCHASE = "PURCHASE"
    PAYMENT = "PAYMENT"
    RECEIPT = "RECEIPT"
    ADJUSTMENT = "ADJUSTMENT"
    TRANSFER = "TRANSFER"
    OPENING_BALANCE = "OPENING_BALANCE"
    CLOSING_BALANCE = "CLOSING_BALANCE"


class Transaction(BaseModel, ShopScopedMixin):
    """
    Ledger posting.

    Debit and credit accounts always differ and the amount is positive.
    A posting belongs to exactly one financial year, which was open when
    the posting was recorded.
    """

    __tablename__ = "transactions"
    __table_args__ = (
        CheckConstraint("amount > 0", name="positive_amount"),
        CheckConstraint("debit_account_id <> credit_account_id", name="distinct_accounts"),
    )

    transaction_type: Mapped[TransactionType] = mapped_column(
        SQLEnum(TransactionType, name="transaction_type"),
        nullable=False,
        index=True,
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    amount_paid: Mapped[Optional[Decimal]] = mapped_column(Numeric(18, 2), nullable=True)
    change: Mapped[Optional[Decimal]] = mapped_column(Numeric(18, 2), nullable=True)
    description: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    debit_account_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("accounts.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    credit_account_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("accounts.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    debit_user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    credit_user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    financial_year_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("financial_years.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    transaction_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)

    # Cash/bank account settled by this posting, if any
    payment_account_kind: Mapped[Optional[PaymentAccountKind]] = mapped_column(
        SQLEnum(PaymentAccountKind, name="payment_account_kind"),
        nullable=True,
    )
    payment_account_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)

    def __repr__(self) -> str:
        return f"<Transaction(id={self.id}, type={self.transaction_type}, amount={self.amount})>"

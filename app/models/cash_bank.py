"""
ShopLedger - Cash and Bank Account Models

Payment accounts with a running balance, and the append-only audit trail of
every balance change.
"""

import uuid
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import Boolean, Index, Numeric, String, Text, Uuid, text, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import BaseModel, BilingualNameMixin, ShopScopedMixin


class PaymentAccountKind(str, Enum):
    CASH = "CASH"
    BANK = "BANK"


class PaymentAccountMixin(ShopScopedMixin, BilingualNameMixin):
    opening_balance: Mapped[Decimal] = mapped_column(Numeric(18, 2), default=Decimal("0"), nullable=False)
    current_balance: Mapped[Decimal] = mapped_column(Numeric(18, 2), default=Decimal("0"), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_default: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)


class CashAccount(BaseModel, PaymentAccountMixin):
    """Cash drawer or petty cash box."""

    __tablename__ = "cash_accounts"
    __table_args__ = (
        Index(
            "ix_cash_accounts_one_default",
            "shop_id",
            unique=True,
            postgresql_where=text("is_default"),
            sqlite_where=text("is_default"),
        ),
    )

    kind = PaymentAccountKind.CASH


class BankAccount(BaseModel, PaymentAccountMixin):
    """Bank account with its routing details."""

    __tablename__ = "bank_accounts"
    __table_args__ = (
        Index(
            "ix_bank_accounts_one_default",
            "shop_id",
            unique=True,
            postgresql_where=text("is_default"),
            sqlite_where=text("is_default"),
        ),
    )

    kind = PaymentAccountKind.BANK

    account_number: Mapped[str] = mapped_column(String(50), nullable=False)
    bank_name: Mapped[str] = mapped_column(String(100), nullable=False)
    iban: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)


class BalanceHistory(BaseModel, ShopScopedMixin):
    """
    One row per balance change of a cash or bank account.

    Rows are never updated or deleted. ``change_amount`` is always
    ``new_balance - previous_balance``.
    """

    __tablename__ = "balance_history"

    account_kind: Mapped[PaymentAccountKind] = mapped_column(
        SQLEnum(PaymentAccountKind, name="payment_account_kind"),
        nullable=False,
    )
    # Polymorphic reference to cash_accounts or bank_accounts
    account_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    previous_balance: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    new_balance: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    change_amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    change_reason: Mapped[str] = mapped_column(Text, nullable=False)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)

    def __repr__(self) -> str:
        return (
            f"<BalanceHistory({self.account_kind}:{self.account_id} "
            f"{self.previous_balance} -> {self.new_balance})>"
        )

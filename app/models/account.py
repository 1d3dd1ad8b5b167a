"""
ShopLedger - Chart of Accounts Model
"""

from decimal import Decimal
from enum import Enum

from sqlalchemy import Boolean, Numeric, UniqueConstraint, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import BaseModel, HierarchyNodeMixin


class AccountType(str, Enum):
    """Top-level classification of an account."""
    ASSET = "ASSET"
    LIABILITY = "LIABILITY"
    EQUITY = "EQUITY"
    REVENUE = "REVENUE"
    EXPENSE = "EXPENSE"

    @property
    def increases_on_debit(self) -> bool:
        return self in (AccountType.ASSET, AccountType.EXPENSE)


class Account(BaseModel, HierarchyNodeMixin):
    """
    Ledger account in a shop's chart of accounts.

    Accounts form a tree of at most three levels. ``code`` and the pair of
    bilingual names are unique within a shop. ``balance`` is maintained by
    the posting service.
    """

    __tablename__ = "accounts"
    __table_args__ = (
        UniqueConstraint("shop_id", "code", name="uq_accounts_shop_code"),
        UniqueConstraint("shop_id", "name_local", "name_global", name="uq_accounts_shop_names"),
    )

    account_type: Mapped[AccountType] = mapped_column(
        SQLEnum(AccountType, name="account_type"),
        nullable=False,
        index=True,
    )
    is_system_account: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    balance: Mapped[Decimal] = mapped_column(
        Numeric(18, 2),
        default=Decimal("0"),
        nullable=False,
    )

    @property
    def is_system(self) -> bool:
        return self.is_system_account

    def __repr__(self) -> str:
        return f"<Account(id={self.id}, code={self.code}, type={self.account_type})>"

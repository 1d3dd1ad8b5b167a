"""
ShopLedger - Expense Category Models

Hierarchical expense categories and their links to EXPENSE accounts.
"""

import uuid

from sqlalchemy import Boolean, ForeignKey, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import BaseModel, HierarchyNodeMixin, ShopScopedMixin


class ExpenseCategory(BaseModel, HierarchyNodeMixin):
    """Expense category; same tree rules as the chart of accounts."""

    __tablename__ = "expense_categories"
    __table_args__ = (
        UniqueConstraint("shop_id", "code", name="uq_expense_categories_shop_code"),
    )

    is_system_category: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    @property
    def is_system(self) -> bool:
        return self.is_system_category

    def __repr__(self) -> str:
        return f"<ExpenseCategory(id={self.id}, code={self.code}, level={self.level})>"


class CategoryAccountAssignment(BaseModel, ShopScopedMixin):
    """Many-to-many link between an expense category and an EXPENSE account."""

    __tablename__ = "category_account_assignments"
    __table_args__ = (
        UniqueConstraint("category_id", "account_id", name="uq_category_account_assignments_pair"),
    )

    category_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("expense_categories.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    account_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("accounts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

"""
ShopLedger - SQLAlchemy Models Package

This package contains all database models for the application.
"""

from app.models.base import BaseModel, TimestampMixin, ShopScopedMixin, HierarchyNodeMixin
from app.models.shop import Shop
from app.models.account import Account, AccountType
from app.models.expense_category import ExpenseCategory, CategoryAccountAssignment
from app.models.cash_bank import (
    PaymentAccountKind,
    CashAccount,
    BankAccount,
    BalanceHistory,
)
from app.models.financial_year import FinancialYear, StockValueHistory, StockValueField
from app.models.transaction import Transaction, TransactionType

__all__ = [
    "BaseModel",
    "TimestampMixin",
    "ShopScopedMixin",
    "HierarchyNodeMixin",
    "Shop",
    "Account",
    "AccountType",
    "ExpenseCategory",
    "CategoryAccountAssignment",
    "PaymentAccountKind",
    "CashAccount",
    "BankAccount",
    "BalanceHistory",
    "FinancialYear",
    "StockValueHistory",
    "StockValueField",
    "Transaction",
    "TransactionType",
]

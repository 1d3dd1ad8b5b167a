"""
ShopLedger - Cash and Bank Schemas
"""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from app.models.cash_bank import PaymentAccountKind


class CashAccountCreateRequest(BaseModel):
    name_local: str = Field(..., min_length=1, max_length=100)
    name_global: str = Field(..., min_length=1, max_length=100)
    opening_balance: Decimal = Field(Decimal("0"), ge=0)
    is_default: bool = False


class BankAccountCreateRequest(CashAccountCreateRequest):
    account_number: str = Field(..., min_length=1, max_length=50)
    bank_name: str = Field(..., min_length=1, max_length=100)
    iban: Optional[str] = Field(None, max_length=50)


class PaymentAccountUpdateRequest(BaseModel):
    """Descriptive fields only; balances change through the balance endpoint."""
    name_local: Optional[str] = Field(None, min_length=1, max_length=100)
    name_global: Optional[str] = Field(None, min_length=1, max_length=100)
    is_active: Optional[bool] = None
    is_default: Optional[bool] = None
    account_number: Optional[str] = Field(None, min_length=1, max_length=50)
    bank_name: Optional[str] = Field(None, min_length=1, max_length=100)
    iban: Optional[str] = Field(None, max_length=50)


class BalanceUpdateRequest(BaseModel):
    new_balance: Decimal
    reason: str = Field(..., min_length=1, max_length=500)


class PaymentAccountResponse(BaseModel):
    id: UUID
    shop_id: UUID
    name_local: str
    name_global: str
    opening_balance: Decimal
    current_balance: Decimal
    is_active: bool
    is_default: bool
    account_number: Optional[str] = None
    bank_name: Optional[str] = None
    iban: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class PaymentAccountListResponse(BaseModel):
    accounts: List[PaymentAccountResponse]
    total: int


class BalanceHistoryResponse(BaseModel):
    id: UUID
    account_kind: PaymentAccountKind
    account_id: UUID
    previous_balance: Decimal
    new_balance: Decimal
    change_amount: Decimal
    change_reason: str
    user_id: UUID
    created_at: datetime

    class Config:
        from_attributes = True


class BalanceHistoryListResponse(BaseModel):
    entries: List[BalanceHistoryResponse]
    offset: int
    limit: int

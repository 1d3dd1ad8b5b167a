"""
ShopLedger - Transaction Schemas
"""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from app.models.cash_bank import PaymentAccountKind
from app.models.transaction import TransactionType


class TransactionCreateRequest(BaseModel):
    """Schema for recording a posting."""
    transaction_type: TransactionType
    amount: Decimal = Field(..., gt=0)
    debit_account_id: UUID
    credit_account_id: UUID
    financial_year_id: Optional[UUID] = Field(None, description="Defaults to the shop's current year")
    transaction_date: Optional[datetime] = None
    amount_paid: Optional[Decimal] = Field(None, ge=0)
    change: Optional[Decimal] = Field(None, ge=0)
    description: Optional[str] = Field(None, max_length=500)
    notes: Optional[str] = None
    credit_user_id: Optional[UUID] = None
    payment_account_kind: Optional[PaymentAccountKind] = None
    payment_account_id: Optional[UUID] = None

    @model_validator(mode="after")
    def check_posting(self):
        if self.debit_account_id == self.credit_account_id:
            raise ValueError("debit and credit accounts must be different")
        if self.amount_paid is not None and self.amount_paid > self.amount:
            raise ValueError("amount_paid cannot exceed amount")
        return self


class TransactionResponse(BaseModel):
    id: UUID
    shop_id: UUID
    transaction_type: TransactionType
    amount: Decimal
    amount_paid: Optional[Decimal] = None
    change: Optional[Decimal] = None
    description: Optional[str] = None
    notes: Optional[str] = None
    debit_account_id: UUID
    credit_account_id: UUID
    debit_user_id: UUID
    credit_user_id: UUID
    financial_year_id: UUID
    transaction_date: datetime
    payment_account_kind: Optional[PaymentAccountKind] = None
    payment_account_id: Optional[UUID] = None
    created_at: datetime

    class Config:
        from_attributes = True


class TransactionListResponse(BaseModel):
    transactions: List[TransactionResponse]
    total: int

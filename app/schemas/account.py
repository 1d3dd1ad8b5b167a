"""
ShopLedger - Chart of Accounts Schemas

Pydantic schemas for accounts, customers and the account tree.
"""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from app.models.account import AccountType


# ===========================================
# REQUEST SCHEMAS
# ===========================================

class AccountCreateRequest(BaseModel):
    """Schema for creating an account."""
    code: str = Field(..., min_length=1, max_length=50)
    name_local: str = Field(..., min_length=1, max_length=100)
    name_global: str = Field(..., min_length=1, max_length=100)
    account_type: AccountType
    parent_id: Optional[UUID] = None


class AccountUpdateRequest(BaseModel):
    """Only names, status and parent can change. Send ``parent_id: null`` to move to the root."""
    name_local: Optional[str] = Field(None, min_length=1, max_length=100)
    name_global: Optional[str] = Field(None, min_length=1, max_length=100)
    is_active: Optional[bool] = None
    parent_id: Optional[UUID] = None


class CustomerCreateRequest(BaseModel):
    name_local: str = Field(..., min_length=1, max_length=100)
    name_global: str = Field(..., min_length=1, max_length=100)
    code: Optional[str] = Field(None, min_length=1, max_length=50, description="Generated as CUST-NNN when omitted")
    parent_id: Optional[UUID] = None


# ===========================================
# RESPONSE SCHEMAS
# ===========================================

class AccountResponse(BaseModel):
    """Schema for account response."""
    id: UUID
    shop_id: UUID
    code: str
    name_local: str
    name_global: str
    account_type: AccountType
    level: int
    parent_id: Optional[UUID] = None
    is_system_account: bool
    is_active: bool
    balance: Decimal
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class AccountListResponse(BaseModel):
    accounts: List[AccountResponse]
    total: int


class AccountTreeNode(AccountResponse):
    """Account with nested children."""
    depth: int = 0
    has_children: bool = False
    children: List["AccountTreeNode"] = []


class AccountTreeResponse(BaseModel):
    accounts: List[AccountTreeNode]
    orphan_ids: List[UUID] = []


class SystemAccountsResponse(BaseModel):
    direct_sales_id: Optional[UUID] = None
    direct_purchases_id: Optional[UUID] = None
    cash_id: Optional[UUID] = None


class HierarchyCheckResponse(BaseModel):
    is_consistent: bool


# For Pydantic v2 self-referencing
AccountTreeNode.model_rebuild()

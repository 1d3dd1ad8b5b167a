"""
ShopLedger - Expense Category Schemas

Pydantic schemas for expense categories, assignments and usage statistics.
"""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from app.schemas.common import ItemError

CATEGORY_CODE_PATTERN = r"^[A-Z0-9_-]+$"


# ===========================================
# REQUEST SCHEMAS
# ===========================================

class ExpenseCategoryCreateRequest(BaseModel):
    """Schema for creating an expense category."""
    code: str = Field(..., min_length=1, max_length=20, pattern=CATEGORY_CODE_PATTERN)
    name_local: str = Field(..., min_length=1, max_length=100)
    name_global: str = Field(..., min_length=1, max_length=100)
    parent_id: Optional[UUID] = None


class ExpenseCategoryUpdateRequest(BaseModel):
    code: Optional[str] = Field(None, min_length=1, max_length=20, pattern=CATEGORY_CODE_PATTERN)
    name_local: Optional[str] = Field(None, min_length=1, max_length=100)
    name_global: Optional[str] = Field(None, min_length=1, max_length=100)
    parent_id: Optional[UUID] = None
    is_active: Optional[bool] = None


class CategoryTemplateRequest(BaseModel):
    code: str = Field(..., min_length=1, max_length=20, pattern=CATEGORY_CODE_PATTERN)
    name_local: str = Field(..., min_length=1, max_length=100)
    name_global: str = Field(..., min_length=1, max_length=100)
    parent_code: Optional[str] = Field(None, max_length=20)


class BulkImportRequest(BaseModel):
    categories: List[CategoryTemplateRequest] = Field(..., min_length=1)


class AssignmentPair(BaseModel):
    category_id: UUID
    account_id: UUID


class BulkAssignmentRequest(BaseModel):
    assignments: List[AssignmentPair] = Field(..., min_length=1)


# ===========================================
# RESPONSE SCHEMAS
# ===========================================

class ExpenseCategoryResponse(BaseModel):
    """Schema for expense category response."""
    id: UUID
    shop_id: UUID
    code: str
    name_local: str
    name_global: str
    level: int
    parent_id: Optional[UUID] = None
    is_system_category: bool
    is_active: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ExpenseCategoryListResponse(BaseModel):
    categories: List[ExpenseCategoryResponse]
    total: int


class ExpenseCategoryTreeNode(ExpenseCategoryResponse):
    depth: int = 0
    has_children: bool = False
    assigned_accounts_count: int = 0
    children: List["ExpenseCategoryTreeNode"] = []


class ExpenseCategoryTreeResponse(BaseModel):
    categories: List[ExpenseCategoryTreeNode]


class BulkImportResponse(BaseModel):
    success: bool
    created_count: int
    skipped_count: int
    error_count: int
    categories: List[ExpenseCategoryResponse]
    errors: List[ItemError] = []


class AssignmentResponse(BaseModel):
    id: UUID
    category_id: UUID
    account_id: UUID
    created_at: datetime

    class Config:
        from_attributes = True


class AssignmentOutcomeResponse(BaseModel):
    category_id: UUID
    account_id: UUID
    success: bool
    assignment_id: Optional[UUID] = None
    error: Optional[str] = None


class BulkRemoveResponse(BaseModel):
    success: bool
    removed_count: int
    errors: List[str] = []


class AssignmentValidationResponse(BaseModel):
    is_valid: bool
    error: Optional[str] = None


class CategoryUsageResponse(BaseModel):
    category_id: UUID
    code: str
    name_local: str
    name_global: str
    assigned_accounts_count: int
    transaction_count: int
    total_amount: Decimal
    last_used_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class MonthlyUsageResponse(BaseModel):
    year: int
    month: int
    label: str
    transaction_count: int
    total_amount: Decimal

    class Config:
        from_attributes = True


# For Pydantic v2 self-referencing
ExpenseCategoryTreeNode.model_rebuild()

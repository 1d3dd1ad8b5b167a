"""
ShopLedger - Shop Schemas
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field


class ShopCreateRequest(BaseModel):
    """Schema for creating a shop."""
    code: str = Field(..., min_length=1, max_length=20, pattern=r"^[A-Za-z0-9_-]+$")
    name_local: str = Field(..., min_length=1, max_length=100)
    name_global: str = Field(..., min_length=1, max_length=100)


class ShopUpdateRequest(BaseModel):
    name_local: Optional[str] = Field(None, min_length=1, max_length=100)
    name_global: Optional[str] = Field(None, min_length=1, max_length=100)
    is_active: Optional[bool] = None


class ShopResponse(BaseModel):
    id: UUID
    code: str
    name_local: str
    name_global: str
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True


class ProvisioningResponse(BaseModel):
    """Shop together with what provisioning installed."""
    shop: ShopResponse
    account_count: int
    categories_created: int
    default_customer_id: UUID

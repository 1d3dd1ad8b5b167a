"""
ShopLedger - Financial Year Schemas
"""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from app.models.financial_year import StockValueField


class FinancialYearCreateRequest(BaseModel):
    """Schema for creating a financial year."""
    name: str = Field(..., min_length=1, max_length=100)
    start_date: date
    end_date: date
    opening_stock_value: Decimal = Field(Decimal("0"), ge=0)

    @model_validator(mode="after")
    def check_dates(self):
        if self.end_date <= self.start_date:
            raise ValueError("end_date must be after start_date")
        return self


class FinancialYearUpdateRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    opening_stock_value: Optional[Decimal] = Field(None, ge=0)


class StockValueRequest(BaseModel):
    value: Decimal = Field(..., ge=0)


class CloseYearRequest(BaseModel):
    closing_stock_value: Decimal = Field(..., ge=0)


class StockValueUpdateItem(BaseModel):
    financial_year_id: UUID
    opening_stock_value: Optional[Decimal] = Field(None, ge=0)
    closing_stock_value: Optional[Decimal] = Field(None, ge=0)


class BulkStockValueRequest(BaseModel):
    updates: List[StockValueUpdateItem] = Field(..., min_length=1)


class FinancialYearResponse(BaseModel):
    """Schema for financial year response."""
    id: UUID
    shop_id: UUID
    name: str
    start_date: date
    end_date: date
    opening_stock_value: Decimal
    closing_stock_value: Optional[Decimal] = None
    is_current: bool
    is_closed: bool
    closed_at: Optional[datetime] = None
    transaction_count: Optional[int] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class FinancialYearListResponse(BaseModel):
    financial_years: List[FinancialYearResponse]
    total: int


class StockValueHistoryResponse(BaseModel):
    id: UUID
    financial_year_id: UUID
    field_changed: StockValueField
    old_value: Optional[Decimal] = None
    new_value: Decimal
    changed_at: datetime
    changed_by: Optional[UUID] = None

    class Config:
        from_attributes = True

"""
ShopLedger - Profit Report Schemas
"""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel


class YearProfitResponse(BaseModel):
    financial_year_id: UUID
    financial_year_name: str
    revenue: Decimal
    expenses: Decimal
    gross_profit: Decimal
    opening_stock_value: Decimal
    closing_stock_value: Optional[Decimal] = None
    stock_adjustment: Decimal
    net_profit: Decimal
    profit_margin: Decimal
    calculated_at: datetime

    class Config:
        from_attributes = True


class ShopProfitsResponse(BaseModel):
    years: List[YearProfitResponse]
    total_revenue: Decimal
    total_expenses: Decimal
    total_net_profit: Decimal
    total_stock_adjustment: Decimal
    skipped_year_ids: List[UUID] = []

    class Config:
        from_attributes = True


class ProfitComparisonResponse(BaseModel):
    current: YearProfitResponse
    previous: YearProfitResponse
    revenue_change: Decimal
    expense_change: Decimal
    gross_profit_change: Decimal
    net_profit_change: Decimal
    stock_value_change: Decimal
    revenue_growth_rate: Decimal
    profit_growth_rate: Decimal

    class Config:
        from_attributes = True


class ClosureCheckResponse(BaseModel):
    is_valid: bool
    warnings: List[str]
    projected_net_profit: Decimal
    current_gross_profit: Decimal
    stock_adjustment: Decimal

    class Config:
        from_attributes = True


class ProfitTrendsResponse(BaseModel):
    years: List[YearProfitResponse]
    average_revenue: Decimal
    average_expenses: Decimal
    average_net_profit: Decimal
    average_profit_margin: Decimal

    class Config:
        from_attributes = True

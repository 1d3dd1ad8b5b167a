"""
ShopLedger - Profit Router

Read-only profit reports.
"""

from decimal import Decimal
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database import get_async_session
from app.dependencies import get_current_shop
from app.models.shop import Shop
from app.schemas.profit import (
    ClosureCheckResponse,
    ProfitComparisonResponse,
    ProfitTrendsResponse,
    ShopProfitsResponse,
    YearProfitResponse,
)
from app.services.profit_calculation_service import ProfitCalculationService


router = APIRouter()


@router.get("", response_model=ShopProfitsResponse, summary="Profit of all years")
async def shop_profits(
    shop: Shop = Depends(get_current_shop),
    db: AsyncSession = Depends(get_async_session),
):
    return ShopProfitsResponse.model_validate(await ProfitCalculationService(db).calculate_shop_profits(shop.id))


@router.get("/trends", response_model=ProfitTrendsResponse, summary="Profit trends of closed years")
async def profit_trends(
    year_count: int = Query(settings.default_trend_years, ge=1, le=settings.max_trend_years),
    shop: Shop = Depends(get_current_shop),
    db: AsyncSession = Depends(get_async_session),
):
    trends = await ProfitCalculationService(db).get_profit_trends(shop.id, year_count)
    return ProfitTrendsResponse.model_validate(trends)


@router.get("/compare", response_model=ProfitComparisonResponse, summary="Compare two years")
async def compare(
    current_year_id: UUID,
    previous_year_id: UUID,
    shop: Shop = Depends(get_current_shop),
    db: AsyncSession = Depends(get_async_session),
):
    comparison = await ProfitCalculationService(db).compare_profits(current_year_id, previous_year_id, shop.id)
    return ProfitComparisonResponse.model_validate(comparison)


@router.get("/{year_id}", response_model=YearProfitResponse, summary="Profit of one year")
async def year_profit(
    year_id: UUID,
    shop: Shop = Depends(get_current_shop),
    db: AsyncSession = Depends(get_async_session),
):
    return YearProfitResponse.model_validate(
        await ProfitCalculationService(db).calculate_year_profit(year_id, shop.id)
    )


@router.get(
    "/{year_id}/closure-check",
    response_model=ClosureCheckResponse,
    summary="Preview year closure",
    description="Warnings for a proposed closing stock value. Advisory only.",
)
async def closure_check(
    year_id: UUID,
    proposed_closing_stock_value: Decimal,
    shop: Shop = Depends(get_current_shop),
    db: AsyncSession = Depends(get_async_session),
):
    check = await ProfitCalculationService(db).validate_year_closure(
        year_id, shop.id, proposed_closing_stock_value
    )
    return ClosureCheckResponse.model_validate(check)

"""
ShopLedger - Financial Years Router

API endpoints for the financial year lifecycle and stock values.
"""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_async_session
from app.dependencies import get_current_shop, get_current_user_id
from app.models.financial_year import FinancialYear
from app.models.shop import Shop
from app.schemas.common import MessageResponse
from app.schemas.financial_year import (
    BulkStockValueRequest,
    CloseYearRequest,
    FinancialYearCreateRequest,
    FinancialYearListResponse,
    FinancialYearResponse,
    FinancialYearUpdateRequest,
    StockValueHistoryResponse,
    StockValueRequest,
)
from app.services.financial_year_service import FinancialYearService, StockValueUpdate


router = APIRouter()


def _response(year: FinancialYear, transaction_count: Optional[int] = None) -> FinancialYearResponse:
    response = FinancialYearResponse.model_validate(year)
    response.transaction_count = transaction_count
    return response


@router.get("", response_model=FinancialYearListResponse, summary="List financial years")
async def list_years(
    shop: Shop = Depends(get_current_shop),
    db: AsyncSession = Depends(get_async_session),
):
    years = await FinancialYearService(db).list_for_shop(shop.id)
    return FinancialYearListResponse(
        financial_years=[_response(year, count) for year, count in years],
        total=len(years),
    )


@router.get("/current", response_model=Optional[FinancialYearResponse], summary="Current financial year")
async def get_current(
    shop: Shop = Depends(get_current_shop),
    db: AsyncSession = Depends(get_async_session),
):
    year = await FinancialYearService(db).get_current_for_shop(shop.id)
    return _response(year) if year else None


@router.post(
    "",
    response_model=FinancialYearResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create financial year",
    description="Dates may not overlap another year of the shop. The first year becomes current.",
)
async def create_year(
    request: FinancialYearCreateRequest,
    shop: Shop = Depends(get_current_shop),
    db: AsyncSession = Depends(get_async_session),
):
    year = await FinancialYearService(db).create(
        shop.id, request.name, request.start_date, request.end_date, request.opening_stock_value
    )
    return _response(year)


@router.post(
    "/stock-values/bulk",
    response_model=List[FinancialYearResponse],
    summary="Bulk update stock values",
    description="All updates are applied together or not at all.",
)
async def bulk_update_stock_values(
    request: BulkStockValueRequest,
    shop: Shop = Depends(get_current_shop),
    user_id: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_async_session),
):
    years = await FinancialYearService(db).bulk_update_stock_values(
        [
            StockValueUpdate(
                shop_id=shop.id,
                financial_year_id=item.financial_year_id,
                opening_stock_value=item.opening_stock_value,
                closing_stock_value=item.closing_stock_value,
            )
            for item in request.updates
        ],
        changed_by=user_id,
    )
    return [_response(y) for y in years]


@router.get("/{year_id}", response_model=FinancialYearResponse, summary="Get financial year")
async def get_year(
    year_id: UUID,
    shop: Shop = Depends(get_current_shop),
    db: AsyncSession = Depends(get_async_session),
):
    service = FinancialYearService(db)
    year = await service.get_by_id(year_id, shop.id)
    return _response(year, await service.count_transactions(year.id))


@router.patch("/{year_id}", response_model=FinancialYearResponse, summary="Update financial year")
async def update_year(
    year_id: UUID,
    request: FinancialYearUpdateRequest,
    shop: Shop = Depends(get_current_shop),
    user_id: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_async_session),
):
    year = await FinancialYearService(db).update(
        year_id,
        shop.id,
        name=request.name,
        start_date=request.start_date,
        end_date=request.end_date,
        opening_stock_value=request.opening_stock_value,
        changed_by=user_id,
    )
    return _response(year)


@router.post("/{year_id}/set-current", response_model=FinancialYearResponse, summary="Set current year")
async def set_current(
    year_id: UUID,
    shop: Shop = Depends(get_current_shop),
    db: AsyncSession = Depends(get_async_session),
):
    return _response(await FinancialYearService(db).set_current(year_id, shop.id))


@router.put("/{year_id}/opening-stock", response_model=FinancialYearResponse, summary="Set opening stock value")
async def set_opening_stock(
    year_id: UUID,
    request: StockValueRequest,
    shop: Shop = Depends(get_current_shop),
    user_id: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_async_session),
):
    year = await FinancialYearService(db).update_opening_stock_value(shop.id, year_id, request.value, user_id)
    return _response(year)


@router.put("/{year_id}/closing-stock", response_model=FinancialYearResponse, summary="Set closing stock value")
async def set_closing_stock(
    year_id: UUID,
    request: StockValueRequest,
    shop: Shop = Depends(get_current_shop),
    user_id: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_async_session),
):
    year = await FinancialYearService(db).update_closing_stock_value(shop.id, year_id, request.value, user_id)
    return _response(year)


@router.get(
    "/{year_id}/stock-history",
    response_model=List[StockValueHistoryResponse],
    summary="Stock value audit trail",
)
async def stock_history(
    year_id: UUID,
    shop: Shop = Depends(get_current_shop),
    db: AsyncSession = Depends(get_async_session),
):
    entries = await FinancialYearService(db).get_stock_value_history(year_id, shop.id)
    return [StockValueHistoryResponse.model_validate(e) for e in entries]


@router.post(
    "/{year_id}/close",
    response_model=FinancialYearResponse,
    summary="Close financial year",
    description="Irreversible. The year must not be current.",
)
async def close_year(
    year_id: UUID,
    request: CloseYearRequest,
    shop: Shop = Depends(get_current_shop),
    user_id: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_async_session),
):
    year = await FinancialYearService(db).close(year_id, shop.id, request.closing_stock_value, user_id)
    return _response(year)


@router.delete("/{year_id}", response_model=MessageResponse, summary="Delete financial year")
async def delete_year(
    year_id: UUID,
    shop: Shop = Depends(get_current_shop),
    db: AsyncSession = Depends(get_async_session),
):
    await FinancialYearService(db).delete(year_id, shop.id)
    return MessageResponse(message="Financial year deleted successfully")

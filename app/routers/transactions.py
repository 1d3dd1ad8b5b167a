"""
ShopLedger - Transactions Router

API endpoints for recording and querying ledger postings.
"""

from datetime import date, datetime
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database import get_async_session
from app.dependencies import get_current_shop, get_current_user_id
from app.models.shop import Shop
from app.models.transaction import TransactionType
from app.schemas.common import MessageResponse
from app.schemas.transaction import (
    TransactionCreateRequest,
    TransactionListResponse,
    TransactionResponse,
)
from app.services.ledger_transaction_service import (
    LedgerTransactionService,
    PostingRequest,
    TransactionFilter,
)


router = APIRouter()


@router.post(
    "",
    response_model=TransactionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Record transaction",
    description="Record a double-entry posting in the given or current financial year.",
)
async def record_transaction(
    request: TransactionCreateRequest,
    shop: Shop = Depends(get_current_shop),
    user_id: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_async_session),
):
    posting = await LedgerTransactionService(db).record_transaction(
        shop.id, user_id, PostingRequest(**request.model_dump())
    )
    return TransactionResponse.model_validate(posting)


@router.get("", response_model=TransactionListResponse, summary="List transactions")
async def list_transactions(
    transaction_type: Optional[TransactionType] = None,
    account_id: Optional[UUID] = None,
    financial_year_id: Optional[UUID] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    offset: int = Query(0, ge=0),
    limit: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
    shop: Shop = Depends(get_current_shop),
    db: AsyncSession = Depends(get_async_session),
):
    postings = await LedgerTransactionService(db).list_transactions(
        shop.id,
        TransactionFilter(
            transaction_type=transaction_type,
            account_id=account_id,
            financial_year_id=financial_year_id,
            start_date=start_date,
            end_date=end_date,
            offset=offset,
            limit=limit,
        ),
    )
    return TransactionListResponse(
        transactions=[TransactionResponse.model_validate(p) for p in postings],
        total=len(postings),
    )


@router.get("/daily", response_model=TransactionListResponse, summary="Transactions of one day")
async def daily_transactions(
    day: date,
    shop: Shop = Depends(get_current_shop),
    db: AsyncSession = Depends(get_async_session),
):
    postings = await LedgerTransactionService(db).get_daily_transactions(shop.id, day)
    return TransactionListResponse(
        transactions=[TransactionResponse.model_validate(p) for p in postings],
        total=len(postings),
    )


@router.get("/{transaction_id}", response_model=TransactionResponse, summary="Get transaction")
async def get_transaction(
    transaction_id: UUID,
    shop: Shop = Depends(get_current_shop),
    db: AsyncSession = Depends(get_async_session),
):
    return TransactionResponse.model_validate(
        await LedgerTransactionService(db).get_transaction(transaction_id, shop.id)
    )


@router.delete(
    "/{transaction_id}",
    response_model=MessageResponse,
    summary="Delete transaction",
    description="Only transactions of open financial years can be deleted; balances are reversed.",
)
async def delete_transaction(
    transaction_id: UUID,
    shop: Shop = Depends(get_current_shop),
    user_id: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_async_session),
):
    await LedgerTransactionService(db).delete_transaction(transaction_id, shop.id, user_id)
    return MessageResponse(message="Transaction deleted successfully")

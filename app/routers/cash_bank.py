"""
ShopLedger - Cash and Bank Router

API endpoints for cash/bank accounts, audited balance changes and balance history.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database import get_async_session
from app.dependencies import get_current_shop, get_current_user_id
from app.models.cash_bank import PaymentAccountKind
from app.models.shop import Shop
from app.schemas.cash_bank import (
    BalanceHistoryListResponse,
    BalanceHistoryResponse,
    BalanceUpdateRequest,
    BankAccountCreateRequest,
    CashAccountCreateRequest,
    PaymentAccountListResponse,
    PaymentAccountResponse,
    PaymentAccountUpdateRequest,
)
from app.schemas.common import MessageResponse
from app.services.balance_ledger_service import BalanceHistoryFilter, BalanceLedgerService


router = APIRouter()


def _history_filter(
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    offset: int = Query(0, ge=0),
    limit: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
) -> BalanceHistoryFilter:
    return BalanceHistoryFilter(start_date=start_date, end_date=end_date, offset=offset, limit=limit)


@router.get(
    "/history",
    response_model=BalanceHistoryListResponse,
    summary="Shop balance history",
    description="Balance changes of all cash and bank accounts of the shop, newest first.",
)
async def shop_history(
    account_kind: Optional[PaymentAccountKind] = None,
    filters: BalanceHistoryFilter = Depends(_history_filter),
    shop: Shop = Depends(get_current_shop),
    db: AsyncSession = Depends(get_async_session),
):
    filters.account_kind = account_kind
    entries = await BalanceLedgerService(db).get_shop_history(shop.id, filters)
    return BalanceHistoryListResponse(
        entries=[BalanceHistoryResponse.model_validate(e) for e in entries],
        offset=filters.offset,
        limit=filters.limit,
    )


@router.post(
    "/cash",
    response_model=PaymentAccountResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create cash account",
)
async def create_cash_account(
    request: CashAccountCreateRequest,
    shop: Shop = Depends(get_current_shop),
    db: AsyncSession = Depends(get_async_session),
):
    account = await BalanceLedgerService(db).create_cash_account(
        shop.id,
        name_local=request.name_local,
        name_global=request.name_global,
        opening_balance=request.opening_balance,
        is_default=request.is_default,
    )
    return PaymentAccountResponse.model_validate(account)


@router.post(
    "/bank",
    response_model=PaymentAccountResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create bank account",
)
async def create_bank_account(
    request: BankAccountCreateRequest,
    shop: Shop = Depends(get_current_shop),
    db: AsyncSession = Depends(get_async_session),
):
    account = await BalanceLedgerService(db).create_bank_account(
        shop.id,
        name_local=request.name_local,
        name_global=request.name_global,
        account_number=request.account_number,
        bank_name=request.bank_name,
        iban=request.iban,
        opening_balance=request.opening_balance,
        is_default=request.is_default,
    )
    return PaymentAccountResponse.model_validate(account)


@router.get("/{kind}", response_model=PaymentAccountListResponse, summary="List cash or bank accounts")
async def list_accounts(
    kind: PaymentAccountKind,
    include_inactive: bool = True,
    shop: Shop = Depends(get_current_shop),
    db: AsyncSession = Depends(get_async_session),
):
    accounts = await BalanceLedgerService(db).list_accounts(kind, shop.id, include_inactive)
    return PaymentAccountListResponse(
        accounts=[PaymentAccountResponse.model_validate(a) for a in accounts],
        total=len(accounts),
    )


@router.get("/{kind}/default", response_model=Optional[PaymentAccountResponse], summary="Default account")
async def get_default(
    kind: PaymentAccountKind,
    shop: Shop = Depends(get_current_shop),
    db: AsyncSession = Depends(get_async_session),
):
    account = await BalanceLedgerService(db).get_default_account(kind, shop.id)
    return PaymentAccountResponse.model_validate(account) if account else None


@router.get("/{kind}/{account_id}", response_model=PaymentAccountResponse, summary="Get account")
async def get_account(
    kind: PaymentAccountKind,
    account_id: UUID,
    shop: Shop = Depends(get_current_shop),
    db: AsyncSession = Depends(get_async_session),
):
    account = await BalanceLedgerService(db).get_account(kind, account_id, shop.id)
    return PaymentAccountResponse.model_validate(account)


@router.patch("/{kind}/{account_id}", response_model=PaymentAccountResponse, summary="Update account")
async def update_account(
    kind: PaymentAccountKind,
    account_id: UUID,
    request: PaymentAccountUpdateRequest,
    shop: Shop = Depends(get_current_shop),
    db: AsyncSession = Depends(get_async_session),
):
    account = await BalanceLedgerService(db).update_account(
        kind, account_id, shop.id, **request.model_dump(exclude_unset=True)
    )
    return PaymentAccountResponse.model_validate(account)


@router.post("/{kind}/{account_id}/default", response_model=PaymentAccountResponse, summary="Set default")
async def set_default(
    kind: PaymentAccountKind,
    account_id: UUID,
    shop: Shop = Depends(get_current_shop),
    db: AsyncSession = Depends(get_async_session),
):
    account = await BalanceLedgerService(db).set_default(kind, account_id, shop.id)
    return PaymentAccountResponse.model_validate(account)


@router.post(
    "/{kind}/{account_id}/balance",
    response_model=BalanceHistoryResponse,
    summary="Adjust balance",
    description="Set a new balance. A reason is mandatory and the change is recorded in the history.",
)
async def update_balance(
    kind: PaymentAccountKind,
    account_id: UUID,
    request: BalanceUpdateRequest,
    shop: Shop = Depends(get_current_shop),
    user_id: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_async_session),
):
    entry = await BalanceLedgerService(db).update_balance(
        kind, account_id, request.new_balance, request.reason, user_id, shop.id
    )
    return BalanceHistoryResponse.model_validate(entry)


@router.get(
    "/{kind}/{account_id}/history",
    response_model=BalanceHistoryListResponse,
    summary="Account balance history",
)
async def account_history(
    kind: PaymentAccountKind,
    account_id: UUID,
    filters: BalanceHistoryFilter = Depends(_history_filter),
    shop: Shop = Depends(get_current_shop),
    db: AsyncSession = Depends(get_async_session),
):
    service = BalanceLedgerService(db)
    await service.get_account(kind, account_id, shop.id)
    entries = await service.get_account_history(kind, account_id, shop.id, filters)
    return BalanceHistoryListResponse(
        entries=[BalanceHistoryResponse.model_validate(e) for e in entries],
        offset=filters.offset,
        limit=filters.limit,
    )


@router.get(
    "/{kind}/{account_id}/history/latest",
    response_model=Optional[BalanceHistoryResponse],
    summary="Latest balance change",
)
async def latest_history(
    kind: PaymentAccountKind,
    account_id: UUID,
    shop: Shop = Depends(get_current_shop),
    db: AsyncSession = Depends(get_async_session),
):
    service = BalanceLedgerService(db)
    await service.get_account(kind, account_id, shop.id)
    entry = await service.get_latest_history(kind, account_id, shop.id)
    return BalanceHistoryResponse.model_validate(entry) if entry else None


@router.delete("/{kind}/{account_id}", response_model=MessageResponse, summary="Delete account")
async def delete_account(
    kind: PaymentAccountKind,
    account_id: UUID,
    shop: Shop = Depends(get_current_shop),
    db: AsyncSession = Depends(get_async_session),
):
    await BalanceLedgerService(db).delete_account(kind, account_id, shop.id)
    return MessageResponse(message="Account deleted successfully")

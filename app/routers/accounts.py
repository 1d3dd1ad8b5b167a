"""
ShopLedger - Accounts Router

API endpoints for the chart of accounts and customer accounts.
"""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_async_session
from app.dependencies import get_current_shop
from app.models.account import AccountType
from app.models.shop import Shop
from app.schemas.account import (
    AccountCreateRequest,
    AccountListResponse,
    AccountResponse,
    AccountTreeNode,
    AccountTreeResponse,
    AccountUpdateRequest,
    CustomerCreateRequest,
    HierarchyCheckResponse,
    SystemAccountsResponse,
)
from app.schemas.common import MessageResponse
from app.services.chart_of_accounts_service import AccountFilter, ChartOfAccountsService
from app.services.hierarchy_service import TreeNode


router = APIRouter()


def _tree_node(node: TreeNode) -> AccountTreeNode:
    return AccountTreeNode(
        **AccountResponse.model_validate(node.item).model_dump(),
        depth=node.depth,
        has_children=node.has_children,
        children=[_tree_node(child) for child in node.children],
    )


@router.get(
    "",
    response_model=AccountListResponse,
    summary="List accounts",
    description="List the shop's accounts, ordered by type then code.",
)
async def list_accounts(
    account_type: Optional[AccountType] = None,
    level: Optional[int] = Query(None, ge=1, le=3),
    parent_id: Optional[UUID] = None,
    is_active: Optional[bool] = None,
    is_system_account: Optional[bool] = None,
    search: Optional[str] = Query(None, max_length=100),
    shop: Shop = Depends(get_current_shop),
    db: AsyncSession = Depends(get_async_session),
):
    accounts = await ChartOfAccountsService(db).list_accounts(
        shop.id,
        AccountFilter(
            account_type=account_type,
            level=level,
            parent_id=parent_id,
            is_active=is_active,
            is_system_account=is_system_account,
            search=search,
        ),
    )
    return AccountListResponse(
        accounts=[AccountResponse.model_validate(a) for a in accounts],
        total=len(accounts),
    )


@router.get("/tree", response_model=AccountTreeResponse, summary="Account tree")
async def get_account_tree(
    shop: Shop = Depends(get_current_shop),
    db: AsyncSession = Depends(get_async_session),
):
    tree = await ChartOfAccountsService(db).get_account_tree(shop.id)
    return AccountTreeResponse(
        accounts=[_tree_node(root) for root in tree.roots],
        orphan_ids=[a.id for a in tree.orphans],
    )


@router.get("/system", response_model=SystemAccountsResponse, summary="System account ids")
async def get_system_accounts(
    shop: Shop = Depends(get_current_shop),
    db: AsyncSession = Depends(get_async_session),
):
    system = await ChartOfAccountsService(db).get_system_accounts(shop.id, shop.code)
    return SystemAccountsResponse(
        direct_sales_id=system.direct_sales_id,
        direct_purchases_id=system.direct_purchases_id,
        cash_id=system.cash_id,
    )


@router.get(
    "/hierarchy-check",
    response_model=HierarchyCheckResponse,
    summary="Check account hierarchy",
    description="Verify every sub-account sits one level under a parent of the same type.",
)
async def check_hierarchy(
    shop: Shop = Depends(get_current_shop),
    db: AsyncSession = Depends(get_async_session),
):
    consistent = await ChartOfAccountsService(db).validate_hierarchy_consistency(shop.id)
    return HierarchyCheckResponse(is_consistent=consistent)


@router.get("/customers", response_model=List[AccountResponse], summary="List customers")
async def list_customers(
    search: Optional[str] = Query(None, max_length=100),
    shop: Shop = Depends(get_current_shop),
    db: AsyncSession = Depends(get_async_session),
):
    customers = await ChartOfAccountsService(db).list_customers(shop.id, search)
    return [AccountResponse.model_validate(c) for c in customers]


@router.post(
    "/customers",
    response_model=AccountResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create customer",
)
async def create_customer(
    request: CustomerCreateRequest,
    shop: Shop = Depends(get_current_shop),
    db: AsyncSession = Depends(get_async_session),
):
    customer = await ChartOfAccountsService(db).create_customer(
        shop.id,
        name_local=request.name_local,
        name_global=request.name_global,
        code=request.code,
        parent_id=request.parent_id,
    )
    return AccountResponse.model_validate(customer)


@router.get("/cash-bank", response_model=List[AccountResponse], summary="Cash and bank GL accounts")
async def list_cash_bank_accounts(
    shop: Shop = Depends(get_current_shop),
    db: AsyncSession = Depends(get_async_session),
):
    accounts = await ChartOfAccountsService(db).get_cash_bank_accounts(shop.id)
    return [AccountResponse.model_validate(a) for a in accounts]


@router.post(
    "",
    response_model=AccountResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create account",
)
async def create_account(
    request: AccountCreateRequest,
    shop: Shop = Depends(get_current_shop),
    db: AsyncSession = Depends(get_async_session),
):
    account = await ChartOfAccountsService(db).create_account(
        shop_id=shop.id,
        code=request.code,
        name_local=request.name_local,
        name_global=request.name_global,
        account_type=request.account_type,
        parent_id=request.parent_id,
    )
    return AccountResponse.model_validate(account)


@router.get("/{account_id}", response_model=AccountResponse, summary="Get account")
async def get_account(
    account_id: UUID,
    shop: Shop = Depends(get_current_shop),
    db: AsyncSession = Depends(get_async_session),
):
    account = await ChartOfAccountsService(db).get_account(account_id, shop.id, active_only=True)
    return AccountResponse.model_validate(account)


@router.patch("/{account_id}", response_model=AccountResponse, summary="Update account")
async def update_account(
    account_id: UUID,
    request: AccountUpdateRequest,
    shop: Shop = Depends(get_current_shop),
    db: AsyncSession = Depends(get_async_session),
):
    changes = {}
    if "parent_id" in request.model_fields_set:
        changes["parent_id"] = request.parent_id
    account = await ChartOfAccountsService(db).update_account(
        account_id,
        shop.id,
        name_local=request.name_local,
        name_global=request.name_global,
        is_active=request.is_active,
        **changes,
    )
    return AccountResponse.model_validate(account)


@router.delete(
    "/{account_id}",
    response_model=MessageResponse,
    summary="Delete account",
    description="Delete an account with no sub-accounts and no transactions. Otherwise deactivate it.",
)
async def delete_account(
    account_id: UUID,
    shop: Shop = Depends(get_current_shop),
    db: AsyncSession = Depends(get_async_session),
):
    await ChartOfAccountsService(db).delete_account(account_id, shop.id)
    return MessageResponse(message="Account deleted successfully")

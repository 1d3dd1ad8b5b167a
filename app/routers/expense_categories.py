"""
ShopLedger - Expense Categories Router

API endpoints for expense categories, their account assignments and usage.
"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_async_session
from app.dependencies import get_current_shop
from app.models.shop import Shop
from app.schemas.account import AccountResponse
from app.schemas.common import ItemError, MessageResponse
from app.schemas.expense_category import (
    AssignmentOutcomeResponse,
    AssignmentPair,
    AssignmentResponse,
    AssignmentValidationResponse,
    BulkAssignmentRequest,
    BulkImportRequest,
    BulkImportResponse,
    BulkRemoveResponse,
    CategoryUsageResponse,
    ExpenseCategoryCreateRequest,
    ExpenseCategoryListResponse,
    ExpenseCategoryResponse,
    ExpenseCategoryTreeNode,
    ExpenseCategoryTreeResponse,
    ExpenseCategoryUpdateRequest,
    MonthlyUsageResponse,
)
from app.services.category_assignment_service import CategoryAssignmentService
from app.services.category_usage_service import CategoryUsageService
from app.services.expense_category_service import (
    CategoryTemplate,
    ExpenseCategoryFilter,
    ExpenseCategoryService,
)


router = APIRouter()


@router.get("", response_model=ExpenseCategoryListResponse, summary="List expense categories")
async def list_categories(
    search: Optional[str] = Query(None, max_length=100),
    level: Optional[int] = Query(None, ge=1, le=3),
    is_active: Optional[bool] = None,
    parent_id: Optional[UUID] = None,
    is_system_category: Optional[bool] = None,
    shop: Shop = Depends(get_current_shop),
    db: AsyncSession = Depends(get_async_session),
):
    categories = await ExpenseCategoryService(db).list_categories(
        shop.id,
        ExpenseCategoryFilter(
            search=search,
            level=level,
            is_active=is_active,
            parent_id=parent_id,
            is_system_category=is_system_category,
        ),
    )
    return ExpenseCategoryListResponse(
        categories=[ExpenseCategoryResponse.model_validate(c) for c in categories],
        total=len(categories),
    )


@router.get("/tree", response_model=ExpenseCategoryTreeResponse, summary="Expense category tree")
async def get_category_tree(
    shop: Shop = Depends(get_current_shop),
    db: AsyncSession = Depends(get_async_session),
):
    service = ExpenseCategoryService(db)
    tree = await service.get_category_tree(shop.id)
    counts = await service.assignment_counts(shop.id)

    def _node(node) -> ExpenseCategoryTreeNode:
        return ExpenseCategoryTreeNode(
            **ExpenseCategoryResponse.model_validate(node.item).model_dump(),
            depth=node.depth,
            has_children=node.has_children,
            assigned_accounts_count=counts.get(node.item.id, 0),
            children=[_node(child) for child in node.children],
        )

    return ExpenseCategoryTreeResponse(categories=[_node(root) for root in tree.roots])


@router.post(
    "",
    response_model=ExpenseCategoryResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create expense category",
)
async def create_category(
    request: ExpenseCategoryCreateRequest,
    shop: Shop = Depends(get_current_shop),
    db: AsyncSession = Depends(get_async_session),
):
    category = await ExpenseCategoryService(db).create_category(
        shop_id=shop.id,
        code=request.code,
        name_local=request.name_local,
        name_global=request.name_global,
        parent_id=request.parent_id,
    )
    return ExpenseCategoryResponse.model_validate(category)


@router.post(
    "/import",
    response_model=BulkImportResponse,
    summary="Bulk import expense categories",
    description="Parents are created before children; existing codes are skipped.",
)
async def bulk_import(
    request: BulkImportRequest,
    shop: Shop = Depends(get_current_shop),
    db: AsyncSession = Depends(get_async_session),
):
    result = await ExpenseCategoryService(db).bulk_import(
        shop.id,
        [
            CategoryTemplate(t.code, t.name_local, t.name_global, t.parent_code)
            for t in request.categories
        ],
    )
    return BulkImportResponse(
        success=result.success,
        created_count=result.created_count,
        skipped_count=result.skipped_count,
        error_count=result.error_count,
        categories=[ExpenseCategoryResponse.model_validate(c) for c in result.created],
        errors=[ItemError(**e.to_dict()) for e in result.errors],
    )


# ===========================================
# ASSIGNMENTS
# ===========================================

@router.post(
    "/assignments/bulk",
    response_model=List[AssignmentOutcomeResponse],
    summary="Bulk assign accounts",
)
async def bulk_assign(
    request: BulkAssignmentRequest,
    shop: Shop = Depends(get_current_shop),
    db: AsyncSession = Depends(get_async_session),
):
    outcomes = await CategoryAssignmentService(db).bulk_assign(
        [(a.category_id, a.account_id) for a in request.assignments], shop.id
    )
    return [
        AssignmentOutcomeResponse(
            category_id=o.category_id,
            account_id=o.account_id,
            success=o.success,
            assignment_id=o.assignment.id if o.assignment else None,
            error=o.error,
        )
        for o in outcomes
    ]


@router.post("/assignments/bulk-remove", response_model=BulkRemoveResponse, summary="Bulk remove assignments")
async def bulk_remove(
    request: BulkAssignmentRequest,
    shop: Shop = Depends(get_current_shop),
    db: AsyncSession = Depends(get_async_session),
):
    result = await CategoryAssignmentService(db).bulk_remove(
        [(a.category_id, a.account_id) for a in request.assignments], shop.id
    )
    return BulkRemoveResponse(success=result.success, removed_count=result.removed_count, errors=result.errors)


@router.post("/assignments/validate", response_model=AssignmentValidationResponse, summary="Validate assignment")
async def validate_assignment(
    request: AssignmentPair,
    shop: Shop = Depends(get_current_shop),
    db: AsyncSession = Depends(get_async_session),
):
    check = await CategoryAssignmentService(db).validate_assignment(
        request.category_id, request.account_id, shop.id
    )
    return AssignmentValidationResponse(is_valid=check.is_valid, error=check.error)


@router.get(
    "/unassigned-accounts",
    response_model=List[AccountResponse],
    summary="EXPENSE accounts without a category",
)
async def unassigned_accounts(
    shop: Shop = Depends(get_current_shop),
    db: AsyncSession = Depends(get_async_session),
):
    accounts = await CategoryAssignmentService(db).unassigned_expense_accounts(shop.id)
    return [AccountResponse.model_validate(a) for a in accounts]


@router.get(
    "/without-accounts",
    response_model=List[ExpenseCategoryResponse],
    summary="Categories without assigned accounts",
)
async def categories_without_accounts(
    shop: Shop = Depends(get_current_shop),
    db: AsyncSession = Depends(get_async_session),
):
    categories = await CategoryAssignmentService(db).categories_without_accounts(shop.id)
    return [ExpenseCategoryResponse.model_validate(c) for c in categories]


@router.get(
    "/by-account/{account_id}",
    response_model=List[ExpenseCategoryResponse],
    summary="Categories of an account",
)
async def categories_for_account(
    account_id: UUID,
    shop: Shop = Depends(get_current_shop),
    db: AsyncSession = Depends(get_async_session),
):
    categories = await CategoryAssignmentService(db).list_for_account(account_id, shop.id)
    return [ExpenseCategoryResponse.model_validate(c) for c in categories]


# ===========================================
# USAGE
# ===========================================

@router.get("/usage", response_model=List[CategoryUsageResponse], summary="Category usage statistics")
async def usage_stats(
    category_id: Optional[UUID] = None,
    limit: int = Query(50, ge=1, le=500),
    shop: Shop = Depends(get_current_shop),
    db: AsyncSession = Depends(get_async_session),
):
    stats = await CategoryUsageService(db).get_usage_stats(shop.id, category_id, limit)
    return [CategoryUsageResponse.model_validate(s) for s in stats]


@router.get("/usage/trends", response_model=List[MonthlyUsageResponse], summary="Monthly category usage")
async def usage_trends(
    category_id: Optional[UUID] = None,
    months: int = Query(12, ge=1, le=60),
    shop: Shop = Depends(get_current_shop),
    db: AsyncSession = Depends(get_async_session),
):
    trends = await CategoryUsageService(db).get_usage_trends(shop.id, category_id, months)
    return [MonthlyUsageResponse.model_validate(t) for t in trends]


@router.get("/usage/most-used", response_model=List[CategoryUsageResponse], summary="Most used categories")
async def most_used(
    limit: int = Query(10, ge=1, le=100),
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    shop: Shop = Depends(get_current_shop),
    db: AsyncSession = Depends(get_async_session),
):
    stats = await CategoryUsageService(db).get_most_used(shop.id, limit, start_date, end_date)
    return [CategoryUsageResponse.model_validate(s) for s in stats]


@router.get("/usage/unused", response_model=List[ExpenseCategoryResponse], summary="Unused categories")
async def unused(
    shop: Shop = Depends(get_current_shop),
    db: AsyncSession = Depends(get_async_session),
):
    categories = await CategoryUsageService(db).get_unused(shop.id)
    return [ExpenseCategoryResponse.model_validate(c) for c in categories]


# ===========================================
# SINGLE CATEGORY
# ===========================================

@router.get("/{category_id}", response_model=ExpenseCategoryResponse, summary="Get expense category")
async def get_category(
    category_id: UUID,
    shop: Shop = Depends(get_current_shop),
    db: AsyncSession = Depends(get_async_session),
):
    return ExpenseCategoryResponse.model_validate(
        await ExpenseCategoryService(db).get_category(category_id, shop.id)
    )


@router.patch("/{category_id}", response_model=ExpenseCategoryResponse, summary="Update expense category")
async def update_category(
    category_id: UUID,
    request: ExpenseCategoryUpdateRequest,
    shop: Shop = Depends(get_current_shop),
    db: AsyncSession = Depends(get_async_session),
):
    changes = {}
    if "parent_id" in request.model_fields_set:
        changes["parent_id"] = request.parent_id
    category = await ExpenseCategoryService(db).update_category(
        category_id,
        shop.id,
        code=request.code,
        name_local=request.name_local,
        name_global=request.name_global,
        is_active=request.is_active,
        **changes,
    )
    return ExpenseCategoryResponse.model_validate(category)


@router.post(
    "/{category_id}/toggle-status",
    response_model=ExpenseCategoryResponse,
    summary="Activate or deactivate",
    description="System categories cannot be deactivated.",
)
async def toggle_status(
    category_id: UUID,
    shop: Shop = Depends(get_current_shop),
    db: AsyncSession = Depends(get_async_session),
):
    category = await ExpenseCategoryService(db).toggle_status(category_id, shop.id)
    return ExpenseCategoryResponse.model_validate(category)


@router.delete(
    "/{category_id}",
    response_model=MessageResponse,
    summary="Delete expense category",
    description="System categories and categories with sub-categories cannot be deleted.",
)
async def delete_category(
    category_id: UUID,
    shop: Shop = Depends(get_current_shop),
    db: AsyncSession = Depends(get_async_session),
):
    await ExpenseCategoryService(db).delete_category(category_id, shop.id)
    return MessageResponse(message="Expense category deleted successfully")


@router.get("/{category_id}/accounts", response_model=List[AccountResponse], summary="Assigned accounts")
async def category_accounts(
    category_id: UUID,
    shop: Shop = Depends(get_current_shop),
    db: AsyncSession = Depends(get_async_session),
):
    accounts = await CategoryAssignmentService(db).list_for_category(category_id, shop.id)
    return [AccountResponse.model_validate(a) for a in accounts]


@router.post(
    "/{category_id}/accounts/{account_id}",
    response_model=AssignmentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Assign account",
)
async def assign_account(
    category_id: UUID,
    account_id: UUID,
    shop: Shop = Depends(get_current_shop),
    db: AsyncSession = Depends(get_async_session),
):
    assignment = await CategoryAssignmentService(db).assign(category_id, account_id, shop.id)
    return AssignmentResponse.model_validate(assignment)


@router.delete(
    "/{category_id}/accounts/{account_id}",
    response_model=MessageResponse,
    summary="Remove account assignment",
)
async def remove_account(
    category_id: UUID,
    account_id: UUID,
    shop: Shop = Depends(get_current_shop),
    db: AsyncSession = Depends(get_async_session),
):
    await CategoryAssignmentService(db).remove(category_id, account_id, shop.id)
    return MessageResponse(message="Assignment removed successfully")

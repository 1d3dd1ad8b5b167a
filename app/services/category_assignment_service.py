"""
ShopLedger - Category Assignment Service

Links between expense categories and EXPENSE accounts.
"""

import logging
import uuid
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import atomic
from app.models.account import Account, AccountType
from app.models.expense_category import CategoryAccountAssignment, ExpenseCategory
from app.utils.error_handling import (
    AppException,
    DuplicateEntryException,
    InvalidOperationException,
    NotFoundException,
)

logger = logging.getLogger(__name__)


@dataclass
class AssignmentOutcome:
    category_id: uuid.UUID
    account_id: uuid.UUID
    success: bool
    assignment: Optional[CategoryAccountAssignment] = None
    error: Optional[str] = None


@dataclass
class BulkRemoveResult:
    removed_count: int = 0
    errors: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors


@dataclass
class AssignmentValidation:
    is_valid: bool
    error: Optional[str] = None


class CategoryAssignmentService:
    """Service for category/account assignment operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _get_category(self, category_id: uuid.UUID, shop_id: uuid.UUID) -> ExpenseCategory:
        result = await self.db.execute(
            select(ExpenseCategory).where(
                and_(ExpenseCategory.id == category_id, ExpenseCategory.shop_id == shop_id)
            )
        )
        category = result.scalar_one_or_none()
        if not category:
            raise NotFoundException("ExpenseCategory", category_id)
        return category

    async def _get_expense_account(self, account_id: uuid.UUID, shop_id: uuid.UUID) -> Account:
        result = await self.db.execute(
            select(Account).where(and_(Account.id == account_id, Account.shop_id == shop_id))
        )
        account = result.scalar_one_or_none()
        if not account:
            raise NotFoundException("Account", account_id)
        if account.account_type != AccountType.EXPENSE:
            raise InvalidOperationException(
                f"Only EXPENSE accounts can be assigned to categories (got {account.account_type.value})",
                field="account_id",
            )
        return account

    async def _find(self, category_id: uuid.UUID, account_id: uuid.UUID) -> Optional[CategoryAccountAssignment]:
        result = await self.db.execute(
            select(CategoryAccountAssignment).where(and_(
                CategoryAccountAssignment.category_id == category_id,
                CategoryAccountAssignment.account_id == account_id,
            ))
        )
        return result.scalar_one_or_none()

    async def assign(
        self,
        category_id: uuid.UUID,
        account_id: uuid.UUID,
        shop_id: uuid.UUID,
    ) -> CategoryAccountAssignment:
        category = await self._get_category(category_id, shop_id)
        account = await self._get_expense_account(account_id, shop_id)
        if await self._find(category.id, account.id):
            raise DuplicateEntryException("CategoryAccountAssignment", "account", account.code)

        assignment = CategoryAccountAssignment(
            shop_id=shop_id,
            category_id=category.id,
            account_id=account.id,
        )
        async with atomic(self.db):
            self.db.add(assignment)
        await self.db.refresh(assignment)
        return assignment

    async def remove(self, category_id: uuid.UUID, account_id: uuid.UUID, shop_id: uuid.UUID) -> None:
        assignment = await self._find(category_id, account_id)
        if not assignment or assignment.shop_id != shop_id:
            raise NotFoundException(
                "CategoryAccountAssignment",
                message=f"Account '{account_id}' is not assigned to category '{category_id}'",
            )
        async with atomic(self.db):
            await self.db.delete(assignment)

    async def list_for_category(self, category_id: uuid.UUID, shop_id: uuid.UUID) -> List[Account]:
        """Accounts assigned to a category."""
        await self._get_category(category_id, shop_id)
        result = await self.db.execute(
            select(Account)
            .join(CategoryAccountAssignment, CategoryAccountAssignment.account_id == Account.id)
            .where(CategoryAccountAssignment.category_id == category_id)
            .order_by(Account.code)
        )
        return list(result.scalars().all())

    async def list_for_account(self, account_id: uuid.UUID, shop_id: uuid.UUID) -> List[ExpenseCategory]:
        """Categories an account is assigned to."""
        result = await self.db.execute(
            select(ExpenseCategory)
            .join(CategoryAccountAssignment, CategoryAccountAssignment.category_id == ExpenseCategory.id)
            .where(and_(
                CategoryAccountAssignment.account_id == account_id,
                CategoryAccountAssignment.shop_id == shop_id,
            ))
            .order_by(ExpenseCategory.code)
        )
        return list(result.scalars().all())

    async def bulk_assign(
        self,
        pairs: List[Tuple[uuid.UUID, uuid.UUID]],
        shop_id: uuid.UUID,
    ) -> List[AssignmentOutcome]:
        """Assign each ``(category_id, account_id)`` pair, reporting per item."""
        outcomes = []
        for category_id, account_id in pairs:
            try:
                assignment = await self.assign(category_id, account_id, shop_id)
                outcomes.append(AssignmentOutcome(category_id, account_id, True, assignment=assignment))
            except AppException as e:
                outcomes.append(AssignmentOutcome(category_id, account_id, False, error=e.message))
        return outcomes

    async def bulk_remove(
        self,
        pairs: List[Tuple[uuid.UUID, uuid.UUID]],
        shop_id: uuid.UUID,
    ) -> BulkRemoveResult:
        outcome = BulkRemoveResult()
        for category_id, account_id in pairs:
            try:
                await self.remove(category_id, account_id, shop_id)
                outcome.removed_count += 1
            except AppException as e:
                outcome.errors.append(e.message)
        return outcome

    async def unassigned_expense_accounts(self, shop_id: uuid.UUID) -> List[Account]:
        assigned = select(CategoryAccountAssignment.account_id).where(
            CategoryAccountAssignment.shop_id == shop_id
        )
        result = await self.db.execute(
            select(Account).where(and_(
                Account.shop_id == shop_id,
                Account.account_type == AccountType.EXPENSE,
                Account.is_active == True,
                Account.id.not_in(assigned),
            )).order_by(Account.code)
        )
        return list(result.scalars().all())

    async def categories_without_accounts(self, shop_id: uuid.UUID) -> List[ExpenseCategory]:
        assigned = select(CategoryAccountAssignment.category_id).where(
            CategoryAccountAssignment.shop_id == shop_id
        )
        result = await self.db.execute(
            select(ExpenseCategory).where(and_(
                ExpenseCategory.shop_id == shop_id,
                ExpenseCategory.is_active == True,
                ExpenseCategory.id.not_in(assigned),
            )).order_by(ExpenseCategory.code)
        )
        return list(result.scalars().all())

    async def validate_assignment(
        self,
        category_id: uuid.UUID,
        account_id: uuid.UUID,
        shop_id: uuid.UUID,
    ) -> AssignmentValidation:
        """Check an assignment without writing it."""
        try:
            await self._get_category(category_id, shop_id)
            account = await self._get_expense_account(account_id, shop_id)
        except AppException as e:
            return AssignmentValidation(False, e.message)
        if await self._find(category_id, account.id):
            return AssignmentValidation(False, "Account is already assigned to this category")
        return AssignmentValidation(True)

    async def assigned_account_ids(self, shop_id: uuid.UUID) -> Dict[uuid.UUID, List[uuid.UUID]]:
        """Map of category id to the ids of its assigned accounts."""
        result = await self.db.execute(
            select(CategoryAccountAssignment.category_id, CategoryAccountAssignment.account_id)
            .where(CategoryAccountAssignment.shop_id == shop_id)
        )
        mapping: Dict[uuid.UUID, List[uuid.UUID]] = {}
        for category_id, account_id in result.all():
            mapping.setdefault(category_id, []).append(account_id)
        return mapping

"""
ShopLedger - Expense Category Service

Hierarchical expense categories: CRUD with tree rules, status toggling,
bulk import from templates and the default category set.
"""

import logging
import uuid
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from sqlalchemy import and_, delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import atomic
from app.models.expense_category import CategoryAccountAssignment, ExpenseCategory
from app.services.hierarchy_service import HierarchyService, Tree
from app.utils.error_handling import (
    AppException,
    DuplicateEntryException,
    HasChildrenException,
    NotFoundException,
    SystemRecordException,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CategoryTemplate:
    code: str
    name_local: str
    name_global: str
    parent_code: Optional[str] = None
    is_system_category: bool = False


DEFAULT_CATEGORY_TEMPLATES: List[CategoryTemplate] = [
    CategoryTemplate("SALARIES", "المرتبات والأجور", "Salaries and Wages", is_system_category=True),
    CategoryTemplate("UTILITIES", "المرافق العامة", "Utilities", is_system_category=True),
    CategoryTemplate("UTILITIES_ELECTRIC", "الكهرباء", "Electricity", "UTILITIES", True),
    CategoryTemplate("UTILITIES_WATER", "المياه", "Water", "UTILITIES", True),
    CategoryTemplate("SUPPLIES", "اللوازم المكتبية", "Office Supplies", is_system_category=True),
    CategoryTemplate("TRANSPORT", "النقل والمواصلات", "Transportation", is_system_category=True),
    CategoryTemplate("TRANSPORT_FUEL", "الوقود", "Fuel", "TRANSPORT", True),
    CategoryTemplate("TRANSPORT_MAINTENANCE", "صيانة المركبات", "Vehicle Maintenance", "TRANSPORT", True),
    CategoryTemplate("OTHER", "أخرى", "Other", is_system_category=True),
]


@dataclass
class ExpenseCategoryFilter:
    search: Optional[str] = None
    level: Optional[int] = None
    is_active: Optional[bool] = None
    parent_id: Optional[uuid.UUID] = None
    is_system_category: Optional[bool] = None


@dataclass
class ImportFailure:
    code: str
    message: str
    error_code: str

    def to_dict(self) -> Dict[str, str]:
        return {"field": self.code, "message": self.message, "code": self.error_code}


@dataclass
class BulkImportResult:
    created: List[ExpenseCategory] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    errors: List[ImportFailure] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors

    @property
    def created_count(self) -> int:
        return len(self.created)

    @property
    def skipped_count(self) -> int:
        return len(self.skipped)

    @property
    def error_count(self) -> int:
        return len(self.errors)


_UNSET = object()


class ExpenseCategoryService:
    """Service for expense category operations."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.tree = HierarchyService(db, ExpenseCategory)

    async def get_category(self, category_id: uuid.UUID, shop_id: uuid.UUID) -> ExpenseCategory:
        category = await self.tree.get_node(category_id, shop_id)
        if not category:
            raise NotFoundException("ExpenseCategory", category_id)
        return category

    async def get_by_code(self, code: str, shop_id: uuid.UUID) -> Optional[ExpenseCategory]:
        result = await self.db.execute(
            select(ExpenseCategory).where(
                and_(ExpenseCategory.code == code, ExpenseCategory.shop_id == shop_id)
            )
        )
        return result.scalar_one_or_none()

    async def list_categories(
        self,
        shop_id: uuid.UUID,
        filters: Optional[ExpenseCategoryFilter] = None,
    ) -> List[ExpenseCategory]:
        filters = filters or ExpenseCategoryFilter()
        conditions = [ExpenseCategory.shop_id == shop_id]
        if filters.level is not None:
            conditions.append(ExpenseCategory.level == filters.level)
        if filters.is_active is not None:
            conditions.append(ExpenseCategory.is_active == filters.is_active)
        if filters.parent_id is not None:
            conditions.append(ExpenseCategory.parent_id == filters.parent_id)
        if filters.is_system_category is not None:
            conditions.append(ExpenseCategory.is_system_category == filters.is_system_category)
        if filters.search:
            pattern = f"%{filters.search.lower()}%"
            conditions.append(or_(
                func.lower(ExpenseCategory.code).like(pattern),
                func.lower(ExpenseCategory.name_local).like(pattern),
                func.lower(ExpenseCategory.name_global).like(pattern),
            ))

        result = await self.db.execute(
            select(ExpenseCategory)
            .where(and_(*conditions))
            .order_by(ExpenseCategory.is_system_category.desc(), ExpenseCategory.level, ExpenseCategory.code)
        )
        return list(result.scalars().all())

    async def get_category_tree(self, shop_id: uuid.UUID) -> Tree[ExpenseCategory]:
        return await self.tree.build_tree(shop_id)

    async def assignment_counts(self, shop_id: uuid.UUID) -> Dict[uuid.UUID, int]:
        result = await self.db.execute(
            select(CategoryAccountAssignment.category_id, func.count(CategoryAccountAssignment.id))
            .where(CategoryAccountAssignment.shop_id == shop_id)
            .group_by(CategoryAccountAssignment.category_id)
        )
        return {row[0]: row[1] for row in result.all()}

    # =========================================================================
    # CRUD
    # =========================================================================

    async def create_category(
        self,
        shop_id: uuid.UUID,
        code: str,
        name_local: str,
        name_global: str,
        parent_id: Optional[uuid.UUID] = None,
        is_system_category: bool = False,
    ) -> ExpenseCategory:
        if await self.get_by_code(code, shop_id):
            raise DuplicateEntryException("ExpenseCategory", "code", code)
        level = await self.tree.level_for_parent(parent_id, shop_id)

        category = ExpenseCategory(
            id=uuid.uuid4(),
            shop_id=shop_id,
            code=code,
            name_local=name_local,
            name_global=name_global,
            parent_id=parent_id,
            level=level,
            is_system_category=is_system_category,
        )
        async with atomic(self.db):
            self.db.add(category)
        await self.db.refresh(category)
        return category

    async def update_category(
        self,
        category_id: uuid.UUID,
        shop_id: uuid.UUID,
        code: Optional[str] = None,
        name_local: Optional[str] = None,
        name_global: Optional[str] = None,
        is_active: Optional[bool] = None,
        parent_id=_UNSET,
    ) -> ExpenseCategory:
        category = await self.get_category(category_id, shop_id)

        if code is not None and code != category.code:
            if await self.get_by_code(code, shop_id):
                raise DuplicateEntryException("ExpenseCategory", "code", code)
        if is_active is False and category.is_system_category:
            raise SystemRecordException("ExpenseCategory", category.code, "deactivate")

        async with atomic(self.db):
            if parent_id is not _UNSET:
                await self.tree.move(category, parent_id)
            if code is not None:
                category.code = code
            if name_local is not None:
                category.name_local = name_local
            if name_global is not None:
                category.name_global = name_global
            if is_active is not None:
                category.is_active = is_active

        await self.db.refresh(category)
        return category

    async def toggle_status(self, category_id: uuid.UUID, shop_id: uuid.UUID) -> ExpenseCategory:
        category = await self.get_category(category_id, shop_id)
        return await self.update_category(category.id, shop_id, is_active=not category.is_active)

    async def delete_category(self, category_id: uuid.UUID, shop_id: uuid.UUID) -> None:
        """Delete a leaf, non-system category together with its assignments."""
        category = await self.get_category(category_id, shop_id)
        if category.is_system_category:
            raise SystemRecordException("ExpenseCategory", category.code, "delete")
        if await self.tree.has_children(category.id, shop_id):
            raise HasChildrenException("ExpenseCategory", category.code)

        async with atomic(self.db):
            await self.db.execute(
                delete(CategoryAccountAssignment).where(CategoryAccountAssignment.category_id == category.id)
            )
            await self.db.delete(category)
        logger.info(f"Deleted expense category {category.code} from shop {shop_id}")

    # =========================================================================
    # BULK IMPORT
    # =========================================================================

    async def bulk_import(
        self,
        shop_id: uuid.UUID,
        templates: List[CategoryTemplate],
    ) -> BulkImportResult:
        """
        Import categories, parents before children.

        Existing codes are skipped. Every template is attempted; failures are
        collected per item instead of aborting the batch.
        """
        outcome = BulkImportResult()
        by_code: Dict[str, ExpenseCategory] = {
            c.code: c for c in await self.tree.load_all(shop_id)
        }
        levels = _template_levels(templates)
        ordered = sorted(templates, key=lambda t: (levels.get(t.code, 99), t.code))

        for template in ordered:
            if template.code in by_code:
                outcome.skipped.append(template.code)
                continue

            parent_id = None
            if template.parent_code:
                parent = by_code.get(template.parent_code)
                if parent is None:
                    outcome.errors.append(ImportFailure(
                        template.code,
                        f"Parent category '{template.parent_code}' not found",
                        "PARENT_NOT_FOUND",
                    ))
                    continue
                parent_id = parent.id

            try:
                category = await self.create_category(
                    shop_id=shop_id,
                    code=template.code,
                    name_local=template.name_local,
                    name_global=template.name_global,
                    parent_id=parent_id,
                    is_system_category=template.is_system_category,
                )
            except AppException as e:
                logger.warning(f"Failed to import category {template.code}: {e.message}")
                outcome.errors.append(ImportFailure(template.code, e.message, "CREATION_FAILED"))
                continue

            by_code[category.code] = category
            outcome.created.append(category)

        logger.info(
            f"Category import for shop {shop_id}: created={outcome.created_count} "
            f"skipped={outcome.skipped_count} errors={outcome.error_count}"
        )
        return outcome

    @staticmethod
    def default_templates() -> List[CategoryTemplate]:
        return list(DEFAULT_CATEGORY_TEMPLATES)

    async def create_default_categories(self, shop_id: uuid.UUID) -> BulkImportResult:
        return await self.bulk_import(shop_id, self.default_templates())


def _template_levels(templates: List[CategoryTemplate]) -> Dict[str, int]:
    """Level of each template within the batch; parents outside the batch count as roots."""
    parents = {t.code: t.parent_code for t in templates}
    levels: Dict[str, int] = {}

    def level_of(code: str, trail: frozenset) -> int:
        if code in levels:
            return levels[code]
        parent = parents.get(code)
        if parent is None or parent not in parents or parent in trail:
            levels[code] = 1
        else:
            levels[code] = level_of(parent, trail | {code}) + 1
        return levels[code]

    for t in templates:
        level_of(t.code, frozenset())
    return levels


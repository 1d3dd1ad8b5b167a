"""
ShopLedger - Expense Category Tests
"""

import pytest

from app.services.expense_category_service import (
    CategoryTemplate,
    ExpenseCategoryFilter,
    ExpenseCategoryService,
)
from app.utils.error_handling import (
    DuplicateEntryException,
    HasChildrenException,
    SystemRecordException,
)


class TestDefaultCategories:
    """Categories installed with a shop."""

    @pytest.mark.asyncio
    async def test_default_tree(self, db_session, shop):
        service = ExpenseCategoryService(db_session)

        tree = await service.get_category_tree(shop.id)

        assert {n.item.code for n in tree.roots} == {"SALARIES", "UTILITIES", "SUPPLIES", "TRANSPORT", "OTHER"}
        utilities = next(n for n in tree.roots if n.item.code == "UTILITIES")
        assert [c.item.code for c in utilities.children] == ["UTILITIES_ELECTRIC", "UTILITIES_WATER"]
        assert all(c.item.level == 2 for c in utilities.children)
        assert tree.orphans == []

    @pytest.mark.asyncio
    async def test_system_category_cannot_be_deactivated_or_deleted(self, db_session, shop):
        service = ExpenseCategoryService(db_session)
        salaries = await service.get_by_code("SALARIES", shop.id)

        with pytest.raises(SystemRecordException):
            await service.update_category(salaries.id, shop.id, is_active=False)
        with pytest.raises(SystemRecordException):
            await service.delete_category(salaries.id, shop.id)

    @pytest.mark.asyncio
    async def test_system_category_can_be_renamed(self, db_session, shop):
        service = ExpenseCategoryService(db_session)
        salaries = await service.get_by_code("SALARIES", shop.id)

        renamed = await service.update_category(salaries.id, shop.id, name_global="Payroll")

        assert renamed.name_global == "Payroll"


class TestCategoryCrud:
    """User-defined categories."""

    @pytest.mark.asyncio
    async def test_duplicate_code_is_rejected(self, db_session, shop):
        service = ExpenseCategoryService(db_session)

        with pytest.raises(DuplicateEntryException):
            await service.create_category(shop.id, "OTHER", "أخرى", "Another Other")

    @pytest.mark.asyncio
    async def test_parent_with_children_cannot_be_deleted(self, db_session, shop):
        service = ExpenseCategoryService(db_session)
        rent = await service.create_category(shop.id, "RENT", "إيجار", "Rent")
        await service.create_category(shop.id, "RENT_SHOP", "إيجار المحل", "Shop Rent", parent_id=rent.id)

        with pytest.raises(HasChildrenException):
            await service.delete_category(rent.id, shop.id)

    @pytest.mark.asyncio
    async def test_toggle_status(self, db_session, shop):
        service = ExpenseCategoryService(db_session)
        rent = await service.create_category(shop.id, "RENT", "إيجار", "Rent")

        off = await service.toggle_status(rent.id, shop.id)
        assert off.is_active is False
        on = await service.toggle_status(rent.id, shop.id)
        assert on.is_active is True

    @pytest.mark.asyncio
    async def test_list_filters(self, db_session, shop):
        service = ExpenseCategoryService(db_session)
        await service.create_category(shop.id, "RENT", "إيجار", "Rent")

        custom = await service.list_categories(shop.id, ExpenseCategoryFilter(is_system_category=False))
        assert [c.code for c in custom] == ["RENT"]

        fuel = await service.list_categories(shop.id, ExpenseCategoryFilter(search="fuel"))
        assert [c.code for c in fuel] == ["TRANSPORT_FUEL"]

        second_level = await service.list_categories(shop.id, ExpenseCategoryFilter(level=2))
        assert len(second_level) == 4


class TestBulkImport:
    """Batch import with per-item outcomes."""

    @pytest.mark.asyncio
    async def test_import_reports_each_item(self, db_session, shop):
        service = ExpenseCategoryService(db_session)
        templates = [
            CategoryTemplate("RENT_SHOP_A_X", "٤", "Too Deep", "RENT_SHOP_A"),
            CategoryTemplate("RENT_SHOP_A", "٣", "Unit A", "RENT_SHOP"),
            CategoryTemplate("RENT_SHOP", "٢", "Shop Rent", "RENT"),
            CategoryTemplate("RENT", "١", "Rent"),
            CategoryTemplate("SALARIES", "المرتبات", "Salaries"),
            CategoryTemplate("STRAY", "شارد", "Stray", "NOPE"),
        ]

        result = await service.bulk_import(shop.id, templates)

        assert [c.code for c in result.created] == ["RENT", "RENT_SHOP", "RENT_SHOP_A"]
        assert result.skipped == ["SALARIES"]
        assert {e.code: e.error_code for e in result.errors} == {
            "STRAY": "PARENT_NOT_FOUND",
            "RENT_SHOP_A_X": "CREATION_FAILED",
        }
        assert result.success is False
        assert (result.created_count, result.skipped_count, result.error_count) == (3, 1, 2)
        assert result.created[2].level == 3

    @pytest.mark.asyncio
    async def test_reimporting_defaults_skips_everything(self, db_session, shop):
        service = ExpenseCategoryService(db_session)

        result = await service.create_default_categories(shop.id)

        assert result.created_count == 0
        assert result.skipped_count == 9
        assert result.success

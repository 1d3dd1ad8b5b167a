"""
ShopLedger - Category Assignment and Usage Tests
"""

from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest
import pytest_asyncio

from app.models.account import AccountType
from app.models.transaction import TransactionType
from app.services.category_assignment_service import CategoryAssignmentService
from app.services.category_usage_service import CategoryUsageService
from app.services.chart_of_accounts_service import ChartOfAccountsService
from app.services.expense_category_service import ExpenseCategoryService
from app.services.ledger_transaction_service import LedgerTransactionService, PostingRequest
from app.utils.error_handling import (
    DuplicateEntryException,
    InvalidOperationException,
    NotFoundException,
)


@pytest_asyncio.fixture
async def rent_account(db_session, shop):
    accounts = ChartOfAccountsService(db_session)
    parent = await accounts.get_by_code("EXP-S1", shop.id)
    return await accounts.create_account(
        shop.id, "EXP-RENT", "إيجار", "Rent", AccountType.EXPENSE, parent_id=parent.id
    )


@pytest_asyncio.fixture
async def utilities(db_session, shop):
    return await ExpenseCategoryService(db_session).get_by_code("UTILITIES", shop.id)


@pytest_asyncio.fixture
async def supplies(db_session, shop):
    return await ExpenseCategoryService(db_session).get_by_code("SUPPLIES", shop.id)


class TestAssign:
    """Single assignments."""

    @pytest.mark.asyncio
    async def test_assign_and_list_both_ways(self, db_session, shop, utilities, rent_account):
        service = CategoryAssignmentService(db_session)

        assignment = await service.assign(utilities.id, rent_account.id, shop.id)

        assert assignment.shop_id == shop.id
        assert [a.code for a in await service.list_for_category(utilities.id, shop.id)] == ["EXP-RENT"]
        assert [c.code for c in await service.list_for_account(rent_account.id, shop.id)] == ["UTILITIES"]
        assert await service.assigned_account_ids(shop.id) == {utilities.id: [rent_account.id]}

    @pytest.mark.asyncio
    async def test_only_expense_accounts(self, db_session, shop, utilities, system_accounts):
        service = CategoryAssignmentService(db_session)

        with pytest.raises(InvalidOperationException):
            await service.assign(utilities.id, system_accounts.cash_id, shop.id)

        check = await service.validate_assignment(utilities.id, system_accounts.cash_id, shop.id)
        assert check.is_valid is False
        assert "EXPENSE" in check.error

    @pytest.mark.asyncio
    async def test_duplicate_assignment_is_rejected(self, db_session, shop, utilities, rent_account):
        service = CategoryAssignmentService(db_session)
        await service.assign(utilities.id, rent_account.id, shop.id)

        with pytest.raises(DuplicateEntryException):
            await service.assign(utilities.id, rent_account.id, shop.id)

        check = await service.validate_assignment(utilities.id, rent_account.id, shop.id)
        assert check.is_valid is False

    @pytest.mark.asyncio
    async def test_remove_missing_assignment_is_not_found(self, db_session, shop, utilities, rent_account):
        with pytest.raises(NotFoundException):
            await CategoryAssignmentService(db_session).remove(utilities.id, rent_account.id, shop.id)

    @pytest.mark.asyncio
    async def test_unknown_category_is_not_found(self, db_session, shop, rent_account):
        with pytest.raises(NotFoundException):
            await CategoryAssignmentService(db_session).assign(uuid4(), rent_account.id, shop.id)

    @pytest.mark.asyncio
    async def test_deleting_category_drops_its_assignments(self, db_session, shop, rent_account):
        categories = ExpenseCategoryService(db_session)
        service = CategoryAssignmentService(db_session)
        temp = await categories.create_category(shop.id, "TEMP", "مؤقت", "Temp")
        await service.assign(temp.id, rent_account.id, shop.id)

        await categories.delete_category(temp.id, shop.id)

        assert await service.list_for_account(rent_account.id, shop.id) == []


class TestBulkAssignments:
    """Batch assignment with per-item outcomes."""

    @pytest.mark.asyncio
    async def test_bulk_assign_reports_each_pair(
        self, db_session, shop, utilities, supplies, rent_account, system_accounts
    ):
        service = CategoryAssignmentService(db_session)

        outcomes = await service.bulk_assign(
            [
                (utilities.id, rent_account.id),
                (supplies.id, rent_account.id),
                (supplies.id, system_accounts.cash_id),
                (utilities.id, rent_account.id),
            ],
            shop.id,
        )

        assert [o.success for o in outcomes] == [True, True, False, False]
        assert outcomes[0].assignment is not None
        assert outcomes[2].error

    @pytest.mark.asyncio
    async def test_bulk_remove_counts_and_collects_errors(self, db_session, shop, utilities, supplies, rent_account):
        service = CategoryAssignmentService(db_session)
        await service.assign(utilities.id, rent_account.id, shop.id)

        result = await service.bulk_remove(
            [(utilities.id, rent_account.id), (supplies.id, rent_account.id)], shop.id
        )

        assert result.removed_count == 1
        assert len(result.errors) == 1
        assert result.success is False

    @pytest.mark.asyncio
    async def test_coverage_reports(self, db_session, shop, utilities, rent_account, system_accounts):
        service = CategoryAssignmentService(db_session)
        await service.assign(utilities.id, rent_account.id, shop.id)

        unassigned = await service.unassigned_expense_accounts(shop.id)
        assert {a.code for a in unassigned} == {"EXP-S1", "EXP-DPURCH-S1"}

        empty = await service.categories_without_accounts(shop.id)
        assert "UTILITIES" not in {c.code for c in empty}
        assert len(empty) == 8


class TestCategoryUsage:
    """Usage statistics derived from postings on assigned accounts."""

    async def _spend(self, db_session, shop, user_id, clock, account_id, cash_id, amount, when=None):
        await LedgerTransactionService(db_session, clock=clock).record_transaction(
            shop.id,
            user_id,
            PostingRequest(
                transaction_type=TransactionType.PAYMENT,
                amount=Decimal(amount),
                debit_account_id=account_id,
                credit_account_id=cash_id,
                transaction_date=when,
            ),
        )

    @pytest.mark.asyncio
    async def test_usage_stats_and_ranking(
        self, db_session, shop, current_year, utilities, supplies, rent_account, system_accounts, user_id, clock
    ):
        assignments = CategoryAssignmentService(db_session)
        await assignments.assign(utilities.id, rent_account.id, shop.id)
        await assignments.assign(supplies.id, system_accounts.direct_purchases_id, shop.id)
        await self._spend(db_session, shop, user_id, clock, rent_account.id, system_accounts.cash_id, "1500")
        await self._spend(db_session, shop, user_id, clock, rent_account.id, system_accounts.cash_id, "500")
        await self._spend(db_session, shop, user_id, clock, system_accounts.direct_purchases_id,
                          system_accounts.cash_id, "100")

        usage = CategoryUsageService(db_session, clock=clock)
        stats = await usage.get_usage_stats(shop.id)

        assert stats[0].code == "UTILITIES"
        assert stats[0].transaction_count == 2
        assert stats[0].total_amount == Decimal("2000")
        assert stats[0].assigned_accounts_count == 1
        assert stats[1].code == "SUPPLIES"

        single = await usage.get_usage_stats(shop.id, category_id=utilities.id)
        assert len(single) == 1

        most_used = await usage.get_most_used(shop.id, limit=2)
        assert [s.code for s in most_used] == ["UTILITIES", "SUPPLIES"]

        unused = await usage.get_unused(shop.id)
        assert {"UTILITIES", "SUPPLIES"}.isdisjoint({c.code for c in unused})
        assert "SALARIES" in {c.code for c in unused}

    @pytest.mark.asyncio
    async def test_monthly_trends(
        self, db_session, shop, current_year, utilities, rent_account, system_accounts, user_id, clock
    ):
        await CategoryAssignmentService(db_session).assign(utilities.id, rent_account.id, shop.id)
        for when, amount in (
            (datetime(2025, 4, 3, tzinfo=timezone.utc), "100"),
            (datetime(2025, 4, 20, tzinfo=timezone.utc), "50"),
            (datetime(2025, 6, 1, tzinfo=timezone.utc), "75"),
        ):
            await self._spend(db_session, shop, user_id, clock, rent_account.id, system_accounts.cash_id, amount, when)

        usage = CategoryUsageService(db_session, clock=clock)
        trends = await usage.get_usage_trends(shop.id, category_id=utilities.id, months=6)

        assert [(m.label, m.transaction_count, m.total_amount) for m in trends] == [
            ("2025-04", 2, Decimal("150")),
            ("2025-06", 1, Decimal("75")),
        ]
        salaries = await ExpenseCategoryService(db_session).get_by_code("SALARIES", shop.id)
        assert await usage.get_usage_trends(shop.id, category_id=salaries.id) == []

    @pytest.mark.asyncio
    async def test_limit_keeps_the_most_used(
        self, db_session, shop, current_year, utilities, rent_account, system_accounts, user_id, clock
    ):
        await CategoryAssignmentService(db_session).assign(utilities.id, rent_account.id, shop.id)
        await self._spend(db_session, shop, user_id, clock, rent_account.id, system_accounts.cash_id, "300")

        top = await CategoryUsageService(db_session, clock=clock).get_usage_stats(shop.id, limit=1)

        assert [s.code for s in top] == ["UTILITIES"]

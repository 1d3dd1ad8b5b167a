"""
ShopLedger - Chart of Accounts Tests
"""

from decimal import Decimal

import pytest

from app.models.account import AccountType
from app.models.transaction import TransactionType
from app.services.chart_of_accounts_service import AccountFilter, ChartOfAccountsService
from app.services.ledger_transaction_service import LedgerTransactionService, PostingRequest
from app.utils.error_handling import (
    DuplicateEntryException,
    HasChildrenException,
    HasDependentPostingsException,
    InvalidOperationException,
    SystemRecordException,
)


class TestAccountCrud:
    """Creating, updating and deleting accounts."""

    @pytest.mark.asyncio
    async def test_duplicate_code_is_rejected(self, db_session, shop):
        service = ChartOfAccountsService(db_session)
        await service.create_account(shop.id, "X-1", "حساب", "Account", AccountType.EXPENSE)

        with pytest.raises(DuplicateEntryException):
            await service.create_account(shop.id, "X-1", "حساب آخر", "Other", AccountType.EXPENSE)

    @pytest.mark.asyncio
    async def test_duplicate_bilingual_name_is_rejected(self, db_session, shop):
        service = ChartOfAccountsService(db_session)
        await service.create_account(shop.id, "X-1", "حساب", "Account", AccountType.EXPENSE)

        with pytest.raises(DuplicateEntryException):
            await service.create_account(shop.id, "X-2", "حساب", "Account", AccountType.EXPENSE)

    @pytest.mark.asyncio
    async def test_child_type_must_match_parent(self, db_session, shop):
        service = ChartOfAccountsService(db_session)
        parent = await service.get_by_code("EXP-S1", shop.id)

        with pytest.raises(InvalidOperationException):
            await service.create_account(
                shop.id, "X-1", "حساب", "Account", AccountType.REVENUE, parent_id=parent.id
            )

    @pytest.mark.asyncio
    async def test_move_under_parent_of_other_type_is_rejected(self, db_session, shop):
        service = ChartOfAccountsService(db_session)
        expenses = await service.get_by_code("EXP-S1", shop.id)
        other_income = await service.create_account(shop.id, "REV-OTHER", "إيرادات أخرى", "Other Income", AccountType.REVENUE)
        shop_id, account_id, parent_id = shop.id, other_income.id, expenses.id

        with pytest.raises(InvalidOperationException):
            await service.update_account(account_id, shop_id, parent_id=parent_id)

        assert (await service.get_account(account_id, shop_id)).parent_id is None

    @pytest.mark.asyncio
    async def test_list_filters_by_type_and_search(self, db_session, shop):
        service = ChartOfAccountsService(db_session)

        expenses = await service.list_accounts(shop.id, AccountFilter(account_type=AccountType.EXPENSE))
        assert {a.code for a in expenses} == {"EXP-S1", "EXP-DPURCH-S1"}

        found = await service.list_accounts(shop.id, AccountFilter(search="purchases"))
        assert [a.code for a in found] == ["EXP-DPURCH-S1"]

    @pytest.mark.asyncio
    async def test_system_account_cannot_be_deleted(self, db_session, shop):
        service = ChartOfAccountsService(db_session)
        account = await service.get_by_code("EXP-DPURCH-S1", shop.id)

        with pytest.raises(SystemRecordException):
            await service.delete_account(account.id, shop.id)

    @pytest.mark.asyncio
    async def test_account_with_children_cannot_be_deleted(self, db_session, shop):
        service = ChartOfAccountsService(db_session)
        parent = await service.create_account(shop.id, "X", "أب", "Parent", AccountType.EXPENSE)
        await service.create_account(shop.id, "X-1", "ابن", "Child", AccountType.EXPENSE, parent_id=parent.id)

        with pytest.raises(HasChildrenException):
            await service.delete_account(parent.id, shop.id)

    @pytest.mark.asyncio
    async def test_account_with_postings_cannot_be_deleted(
        self, db_session, shop, current_year, system_accounts, user_id, clock
    ):
        service = ChartOfAccountsService(db_session)
        rent = await service.create_account(shop.id, "RENT", "إيجار", "Rent", AccountType.EXPENSE)
        await LedgerTransactionService(db_session, clock=clock).record_transaction(
            shop.id,
            user_id,
            PostingRequest(
                transaction_type=TransactionType.PAYMENT,
                amount=Decimal("500"),
                debit_account_id=rent.id,
                credit_account_id=system_accounts.cash_id,
            ),
        )

        with pytest.raises(HasDependentPostingsException):
            await service.delete_account(rent.id, shop.id)

    @pytest.mark.asyncio
    async def test_leaf_account_is_deleted(self, db_session, shop):
        service = ChartOfAccountsService(db_session)
        account = await service.create_account(shop.id, "TMP", "مؤقت", "Temp", AccountType.EXPENSE)

        await service.delete_account(account.id, shop.id)

        assert await service.get_by_code("TMP", shop.id) is None

    @pytest.mark.asyncio
    async def test_deactivate_keeps_account(self, db_session, shop):
        service = ChartOfAccountsService(db_session)
        account = await service.create_account(shop.id, "TMP", "مؤقت", "Temp", AccountType.EXPENSE)

        updated = await service.deactivate_account(account.id, shop.id)

        assert updated.is_active is False


class TestCustomers:
    """Customer (LIABILITY) accounts."""

    @pytest.mark.asyncio
    async def test_customer_codes_are_sequential(self, db_session, shop):
        service = ChartOfAccountsService(db_session)

        first = await service.create_customer(shop.id, "عميل أول", "First Customer")
        second = await service.create_customer(shop.id, "عميل ثان", "Second Customer")

        assert first.code == "CUST-001"
        assert second.code == "CUST-002"
        assert second.account_type == AccountType.LIABILITY

    @pytest.mark.asyncio
    async def test_list_customers_includes_default_customer(self, db_session, shop):
        service = ChartOfAccountsService(db_session)

        customers = await service.list_customers(shop.id, search="direct sales")

        assert "DS-001" in {c.code for c in customers}


class TestConsistency:
    """Hierarchy consistency and payment GL accounts."""

    @pytest.mark.asyncio
    async def test_provisioned_chart_is_consistent(self, db_session, shop):
        service = ChartOfAccountsService(db_session)

        assert await service.validate_hierarchy_consistency(shop.id) is True
        tree = await service.get_account_tree(shop.id)
        assert tree.orphans == []
        assert len(tree.roots) == 5

    @pytest.mark.asyncio
    async def test_cash_bank_accounts(self, db_session, shop):
        service = ChartOfAccountsService(db_session)

        accounts = await service.get_cash_bank_accounts(shop.id)

        assert [a.code for a in accounts] == ["ASSET-CASH-S1"]

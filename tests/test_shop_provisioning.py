"""
ShopLedger - Shop Provisioning Tests
"""

import pytest
from sqlalchemy import func, select

from app.models.account import Account, AccountType
from app.models.expense_category import ExpenseCategory
from app.models.shop import Shop
from app.services.chart_of_accounts_service import ChartOfAccountsService
from app.services.expense_category_service import DEFAULT_CATEGORY_TEMPLATES
from app.services.shop_service import ShopService
from app.utils.error_handling import DuplicateEntryException


class TestShopProvisioning:
    """Default data installed with a new shop."""

    @pytest.mark.asyncio
    async def test_create_shop_installs_defaults(self, db_session, provisioned):
        shop = provisioned.shop

        assert len(provisioned.accounts) == 9
        assert provisioned.categories_created == len(DEFAULT_CATEGORY_TEMPLATES)
        assert provisioned.default_customer.code == "DS-001"

        codes = {a.code for a in provisioned.accounts}
        assert {"REV-S1", "EXP-S1", "ASSET-S1", "LIAB-S1", "EQUITY-S1"} <= codes
        assert {"REV-DSALES-S1", "EXP-DPURCH-S1", "ASSET-CASH-S1", "LIAB-AP-S1"} <= codes
        assert all(a.is_system_account for a in provisioned.accounts)

        accounts = ChartOfAccountsService(db_session)
        liabilities = await accounts.get_by_code("LIAB-S1", shop.id)
        assert provisioned.default_customer.parent_id == liabilities.id
        assert provisioned.default_customer.level == 2
        assert provisioned.default_customer.account_type == AccountType.LIABILITY

    @pytest.mark.asyncio
    async def test_children_sit_under_root_of_same_type(self, db_session, shop):
        accounts = ChartOfAccountsService(db_session)

        cash = await accounts.get_by_code("ASSET-CASH-S1", shop.id)
        assets = await accounts.get_by_code("ASSET-S1", shop.id)

        assert cash.parent_id == assets.id
        assert cash.level == 2
        assert assets.level == 1

    @pytest.mark.asyncio
    async def test_provisioning_is_idempotent(self, db_session, shop):
        service = ShopService(db_session)

        again = await service.provision_shop(shop.id)

        assert len(again.accounts) == 9
        assert again.categories_created == 0
        assert again.default_customer.code == "DS-001"
        all_accounts = await ChartOfAccountsService(db_session).list_accounts(shop.id)
        assert len(all_accounts) == 10

    @pytest.mark.asyncio
    async def test_system_account_ids(self, db_session, shop, system_accounts):
        accounts = ChartOfAccountsService(db_session)

        cash = await accounts.get_account(system_accounts.cash_id, shop.id)
        sales = await accounts.get_account(system_accounts.direct_sales_id, shop.id)
        purchases = await accounts.get_account(system_accounts.direct_purchases_id, shop.id)

        assert cash.code == "ASSET-CASH-S1"
        assert sales.account_type == AccountType.REVENUE
        assert purchases.account_type == AccountType.EXPENSE

    @pytest.mark.asyncio
    async def test_duplicate_shop_code_is_rejected(self, db_session, shop):
        with pytest.raises(DuplicateEntryException):
            await ShopService(db_session).create_shop("S1", "متجر آخر", "Another Shop")

    @pytest.mark.asyncio
    async def test_shops_are_isolated(self, db_session, shop):
        other = await ShopService(db_session).create_shop("S2", "متجر اثنان", "Shop Two")
        accounts = ChartOfAccountsService(db_session)

        assert await accounts.get_by_code("REV-S1", other.shop.id) is None
        assert await accounts.get_by_code("REV-S2", other.shop.id) is not None
        assert await accounts.get_by_code("DS-001", other.shop.id) is not None


class TestProvisioningAtomicity:
    """A failure while provisioning leaves nothing behind."""

    @pytest.mark.asyncio
    async def test_failed_provisioning_rolls_back_shop_and_defaults(self, db_session, monkeypatch):
        async def fail(self, shop_id, shop_code):
            raise RuntimeError("customer step failed")

        monkeypatch.setattr(ChartOfAccountsService, "ensure_default_customer", fail)

        with pytest.raises(RuntimeError):
            await ShopService(db_session).create_shop("S7", "متجر سبعة", "Shop Seven")

        shops = await db_session.execute(select(Shop).where(Shop.code == "S7"))
        assert shops.scalars().all() == []
        assert (await db_session.execute(select(func.count(Account.id)))).scalar() == 0
        assert (await db_session.execute(select(func.count(ExpenseCategory.id)))).scalar() == 0

        monkeypatch.undo()
        result = await ShopService(db_session).create_shop("S7", "متجر سبعة", "Shop Seven")
        assert len(result.accounts) == 9

"""Report orphaned and inconsistent accounts and expense categories for every shop."""
import asyncio
import sys

from app.database import async_session_maker
from app.services.chart_of_accounts_service import ChartOfAccountsService
from app.services.expense_category_service import ExpenseCategoryService
from app.services.shop_service import ShopService


async def check_hierarchies() -> int:
    problems = 0
    async with async_session_maker() as db:
        shops = await ShopService(db).list_shops(include_inactive=True)
        print(f"Checking {len(shops)} shop(s)...")

        for shop in shops:
            accounts = ChartOfAccountsService(db)
            categories = ExpenseCategoryService(db)

            account_tree = await accounts.get_account_tree(shop.id)
            category_tree = await categories.get_category_tree(shop.id)
            consistent = await accounts.validate_hierarchy_consistency(shop.id)

            print(f"\n{shop.code} ({shop.name_global})")
            print(f"  Accounts: {len(account_tree.flatten())}, orphans: {len(account_tree.orphans)}")
            for account in account_tree.orphans:
                print(f"    orphan account {account.code}")
            print(f"  Categories: {len(category_tree.flatten())}, orphans: {len(category_tree.orphans)}")
            for category in category_tree.orphans:
                print(f"    orphan category {category.code}")
            if not consistent:
                print("  Account levels or types do not match their parents (see log)")

            problems += len(account_tree.orphans) + len(category_tree.orphans) + (0 if consistent else 1)

    print(f"\n{problems} problem(s) found")
    return problems


if __name__ == "__main__":
    sys.exit(1 if asyncio.run(check_hierarchies()) else 0)

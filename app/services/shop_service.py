"""
ShopLedger - Shop Service

Shop (tenant) creation and provisioning of its default ledger data.
"""

import logging
import uuid
from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import atomic
from app.models.account import Account
from app.models.shop import Shop
from app.services.chart_of_accounts_service import ChartOfAccountsService
from app.services.expense_category_service import ExpenseCategoryService
from app.utils.error_handling import DuplicateEntryException, NotFoundException

logger = logging.getLogger(__name__)


@dataclass
class ProvisioningResult:
    shop: Shop
    accounts: List[Account]
    categories_created: int
    default_customer: Account


class ShopService:
    """Service for shop operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_shop(self, shop_id: uuid.UUID) -> Shop:
        result = await self.db.execute(select(Shop).where(Shop.id == shop_id))
        shop = result.scalar_one_or_none()
        if not shop:
            raise NotFoundException("Shop", shop_id)
        return shop

    async def list_shops(self, include_inactive: bool = False) -> List[Shop]:
        query = select(Shop)
        if not include_inactive:
            query = query.where(Shop.is_active == True)
        result = await self.db.execute(query.order_by(Shop.code))
        return list(result.scalars().all())

    async def _ensure_unique(self, code: str, name_local: str, name_global: str) -> None:
        result = await self.db.execute(
            select(Shop).where(or_(
                Shop.code == code,
                and_(Shop.name_local == name_local, Shop.name_global == name_global),
            ))
        )
        existing = result.scalars().first()
        if existing is None:
            return
        if existing.code == code:
            raise DuplicateEntryException("Shop", "code", code)
        raise DuplicateEntryException("Shop", "name", f"{name_local} / {name_global}")

    async def create_shop(self, code: str, name_local: str, name_global: str) -> ProvisioningResult:
        """Create a shop and provision its defaults in one unit of work."""
        await self._ensure_unique(code, name_local, name_global)

        async with atomic(self.db):
            shop = Shop(id=uuid.uuid4(), code=code, name_local=name_local, name_global=name_global)
            self.db.add(shop)
            await self.db.flush()
            provisioned = await self._provision(shop)

        logger.info(f"Created shop {code}")
        return provisioned

    async def provision_shop(self, shop_id: uuid.UUID) -> ProvisioningResult:
        """
        Install default accounts, expense categories and the default customer.

        Safe to run repeatedly; anything already present is left as is.
        """
        shop = await self.get_shop(shop_id)
        async with atomic(self.db):
            return await self._provision(shop)

    async def _provision(self, shop: Shop) -> ProvisioningResult:
        accounts_service = ChartOfAccountsService(self.db)
        accounts = await accounts_service.provision_defaults(shop.id, shop.code)
        categories = await ExpenseCategoryService(self.db).create_default_categories(shop.id)
        customer = await accounts_service.ensure_default_customer(shop.id, shop.code)
        return ProvisioningResult(
            shop=shop,
            accounts=accounts,
            categories_created=categories.created_count,
            default_customer=customer,
        )

    async def update_shop(
        self,
        shop_id: uuid.UUID,
        name_local: Optional[str] = None,
        name_global: Optional[str] = None,
        is_active: Optional[bool] = None,
    ) -> Shop:
        shop = await self.get_shop(shop_id)
        new_local = name_local or shop.name_local
        new_global = name_global or shop.name_global
        if (new_local, new_global) != (shop.name_local, shop.name_global):
            result = await self.db.execute(
                select(Shop.id).where(and_(
                    Shop.name_local == new_local,
                    Shop.name_global == new_global,
                    Shop.id != shop.id,
                ))
            )
            if result.first():
                raise DuplicateEntryException("Shop", "name", f"{new_local} / {new_global}")

        async with atomic(self.db):
            shop.name_local = new_local
            shop.name_global = new_global
            if is_active is not None:
                shop.is_active = is_active
        await self.db.refresh(shop)
        return shop

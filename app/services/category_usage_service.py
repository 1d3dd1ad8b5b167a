"""
ShopLedger - Category Usage Service

Read-only usage statistics for expense categories, derived from postings on
the accounts assigned to each category.
"""

import uuid
from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy import and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.account import Account, AccountType
from app.models.expense_category import CategoryAccountAssignment, ExpenseCategory
from app.models.transaction import Transaction
from app.utils.clock import Clock, utc_now

# Amounts are scaled down by this factor before being mixed with counts in scores
AMOUNT_SCALE = Decimal("1000")


@dataclass
class CategoryUsage:
    category_id: uuid.UUID
    code: str
    name_local: str
    name_global: str
    assigned_accounts_count: int
    transaction_count: int
    total_amount: Decimal
    last_used_at: Optional[datetime] = None

    @property
    def usage_score(self) -> Decimal:
        return self.transaction_count + self.total_amount / AMOUNT_SCALE

    @property
    def weighted_score(self) -> Decimal:
        return Decimal("0.7") * self.transaction_count + Decimal("0.3") * (self.total_amount / AMOUNT_SCALE)


@dataclass
class MonthlyUsage:
    year: int
    month: int
    transaction_count: int
    total_amount: Decimal

    @property
    def label(self) -> str:
        return f"{self.year}-{self.month:02d}"


class CategoryUsageService:
    def __init__(self, db: AsyncSession, clock: Clock = utc_now):
        self.db = db
        self.clock = clock

    async def _categories(
        self,
        shop_id: uuid.UUID,
        category_id: Optional[uuid.UUID] = None,
        active_only: bool = False,
    ) -> List[ExpenseCategory]:
        conditions = [ExpenseCategory.shop_id == shop_id]
        if category_id is not None:
            conditions.append(ExpenseCategory.id == category_id)
        if active_only:
            conditions.append(ExpenseCategory.is_active == True)
        result = await self.db.execute(
            select(ExpenseCategory).where(and_(*conditions)).order_by(ExpenseCategory.name_global)
        )
        return list(result.scalars().all())

    async def _assigned_accounts(self, shop_id: uuid.UUID) -> Dict[uuid.UUID, List[uuid.UUID]]:
        result = await self.db.execute(
            select(CategoryAccountAssignment.category_id, CategoryAccountAssignment.account_id)
            .where(CategoryAccountAssignment.shop_id == shop_id)
        )
        mapping: Dict[uuid.UUID, List[uuid.UUID]] = {}
        for category_id, account_id in result.all():
            mapping.setdefault(category_id, []).append(account_id)
        return mapping

    async def _stats_for(
        self,
        category: ExpenseCategory,
        account_ids: List[uuid.UUID],
        debit_only: bool = False,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> CategoryUsage:
        usage = CategoryUsage(
            category_id=category.id,
            code=category.code,
            name_local=category.name_local,
            name_global=category.name_global,
            assigned_accounts_count=len(account_ids),
            transaction_count=0,
            total_amount=Decimal("0"),
        )
        if not account_ids:
            return usage

        touches = Transaction.debit_account_id.in_(account_ids)
        if not debit_only:
            touches = or_(touches, Transaction.credit_account_id.in_(account_ids))
        conditions = [Transaction.shop_id == category.shop_id, touches]
        if start is not None:
            conditions.append(Transaction.transaction_date >= start)
        if end is not None:
            conditions.append(Transaction.transaction_date <= end)

        result = await self.db.execute(
            select(func.count(Transaction.id), func.max(Transaction.transaction_date))
            .where(and_(*conditions))
        )
        count, last_used = result.one()

        amount_result = await self.db.execute(
            select(func.coalesce(func.sum(Transaction.amount), 0)).where(and_(
                *conditions[:1],
                Transaction.debit_account_id.in_(account_ids),
                *conditions[2:],
            ))
        )
        usage.transaction_count = count or 0
        usage.total_amount = Decimal(str(amount_result.scalar() or 0))
        usage.last_used_at = last_used
        return usage

    async def get_usage_stats(
        self,
        shop_id: uuid.UUID,
        category_id: Optional[uuid.UUID] = None,
        limit: int = 50,
    ) -> List[CategoryUsage]:
        """
        Usage per category, most used first.

        Counts postings on either side of an assigned account; the total only
        sums the debit side, which is where expenses land.
        """
        categories = await self._categories(shop_id, category_id)
        assigned = await self._assigned_accounts(shop_id)

        stats = [await self._stats_for(c, assigned.get(c.id, [])) for c in categories]
        stats.sort(key=lambda s: s.usage_score, reverse=True)
        return stats[:limit]

    async def get_usage_trends(
        self,
        shop_id: uuid.UUID,
        category_id: Optional[uuid.UUID] = None,
        months: int = 12,
    ) -> List[MonthlyUsage]:
        """Monthly debit postings of a category (or of all EXPENSE accounts), oldest first."""
        since = self.clock() - timedelta(days=31 * months)

        if category_id is not None:
            account_ids = (await self._assigned_accounts(shop_id)).get(category_id, [])
            if not account_ids:
                return []
        else:
            result = await self.db.execute(
                select(Account.id).where(and_(
                    Account.shop_id == shop_id,
                    Account.account_type == AccountType.EXPENSE,
                ))
            )
            account_ids = list(result.scalars().all())

        result = await self.db.execute(
            select(Transaction.transaction_date, Transaction.amount)
            .where(and_(
                Transaction.shop_id == shop_id,
                Transaction.debit_account_id.in_(account_ids),
                Transaction.transaction_date >= since,
            ))
            .order_by(Transaction.transaction_date)
        )

        buckets: "OrderedDict[tuple, MonthlyUsage]" = OrderedDict()
        for posted_at, amount in result.all():
            key = (posted_at.year, posted_at.month)
            bucket = buckets.get(key)
            if bucket is None:
                bucket = buckets[key] = MonthlyUsage(posted_at.year, posted_at.month, 0, Decimal("0"))
            bucket.transaction_count += 1
            bucket.total_amount += Decimal(str(amount))
        return list(buckets.values())

    async def get_most_used(
        self,
        shop_id: uuid.UUID,
        limit: int = 10,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> List[CategoryUsage]:
        """Active categories ranked by a 70/30 blend of posting count and scaled debit amount."""
        categories = await self._categories(shop_id, active_only=True)
        assigned = await self._assigned_accounts(shop_id)
        stats = [
            await self._stats_for(c, assigned.get(c.id, []), debit_only=True, start=start, end=end)
            for c in categories
        ]
        stats.sort(key=lambda s: s.weighted_score, reverse=True)
        return stats[:limit]

    async def get_unused(self, shop_id: uuid.UUID) -> List[ExpenseCategory]:
        """Active categories with no assigned accounts, or whose accounts have no postings."""
        categories = await self._categories(shop_id, active_only=True)
        assigned = await self._assigned_accounts(shop_id)

        unused = []
        for category in categories:
            account_ids = assigned.get(category.id, [])
            if not account_ids:
                unused.append(category)
                continue
            usage = await self._stats_for(category, account_ids)
            if usage.transaction_count == 0:
                unused.append(category)
        return sorted(unused, key=lambda c: c.code)

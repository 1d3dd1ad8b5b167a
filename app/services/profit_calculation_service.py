"""
ShopLedger - Profit Calculation Service

Read-only profit figures per financial year:
- Revenue: postings credited to REVENUE accounts
- Expenses: postings debited to EXPENSE accounts
- Net profit: gross profit adjusted by the change in stock value

Also year comparison, closure sanity checks and multi-year trends.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import and_, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from app.config import settings
from app.models.account import Account, AccountType
from app.models.financial_year import FinancialYear
from app.models.transaction import Transaction
from app.utils.clock import Clock, utc_now
from app.utils.error_handling import AppException, InvalidOperationException, NotFoundException

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
HUNDRED = Decimal("100")

NEGATIVE_CLOSING_WARNING = "Closing stock value cannot be negative"
LARGE_CHANGE_WARNING = "Stock value change is unusually large compared to revenue"
NEGATIVE_PROFIT_WARNING = "Proposed closing stock value would result in negative net profit"


# =========================================================================
# PURE CALCULATIONS
# =========================================================================

def stock_adjustment(opening: Decimal, closing: Optional[Decimal]) -> Decimal:
    """Closing minus opening stock; zero while the closing value is unknown."""
    if closing is None:
        return ZERO
    return Decimal(str(closing)) - Decimal(str(opening or 0))


def growth_rate(current: Decimal, previous: Decimal) -> Decimal:
    """Percentage change from ``previous``; 0 when ``previous`` is 0."""
    if previous == 0:
        return ZERO
    return (current - previous) / previous * HUNDRED


def profit_margin(net_profit: Decimal, revenue: Decimal) -> Decimal:
    if revenue == 0:
        return ZERO
    return net_profit / revenue * HUNDRED


def closure_warnings(
    revenue: Decimal,
    expenses: Decimal,
    opening: Decimal,
    proposed_closing: Decimal,
    large_change_ratio: Decimal = settings.closure_stock_change_ratio,
) -> List[str]:
    """Advisory warnings for closing a year with ``proposed_closing`` stock."""
    warnings = []
    gross = revenue - expenses
    adjustment = Decimal(str(proposed_closing)) - Decimal(str(opening))
    projected = gross + adjustment

    if proposed_closing < 0:
        warnings.append(NEGATIVE_CLOSING_WARNING)
    if abs(adjustment) > revenue * large_change_ratio:
        warnings.append(LARGE_CHANGE_WARNING)
    if projected < 0 and gross > 0:
        warnings.append(NEGATIVE_PROFIT_WARNING)
    return warnings


# =========================================================================
# RESULT TYPES
# =========================================================================

@dataclass
class YearProfit:
    financial_year_id: uuid.UUID
    financial_year_name: str
    revenue: Decimal
    expenses: Decimal
    opening_stock_value: Decimal
    closing_stock_value: Optional[Decimal]
    calculated_at: datetime

    @property
    def gross_profit(self) -> Decimal:
        return self.revenue - self.expenses

    @property
    def stock_adjustment(self) -> Decimal:
        return stock_adjustment(self.opening_stock_value, self.closing_stock_value)

    @property
    def net_profit(self) -> Decimal:
        return self.gross_profit + self.stock_adjustment

    @property
    def profit_margin(self) -> Decimal:
        return profit_margin(self.net_profit, self.revenue)


@dataclass
class ShopProfits:
    years: List[YearProfit]
    total_revenue: Decimal = ZERO
    total_expenses: Decimal = ZERO
    total_net_profit: Decimal = ZERO
    total_stock_adjustment: Decimal = ZERO
    skipped_year_ids: List[uuid.UUID] = field(default_factory=list)


@dataclass
class ProfitComparison:
    current: YearProfit
    previous: YearProfit

    @property
    def revenue_change(self) -> Decimal:
        return self.current.revenue - self.previous.revenue

    @property
    def expense_change(self) -> Decimal:
        return self.current.expenses - self.previous.expenses

    @property
    def gross_profit_change(self) -> Decimal:
        return self.current.gross_profit - self.previous.gross_profit

    @property
    def net_profit_change(self) -> Decimal:
        return self.current.net_profit - self.previous.net_profit

    @property
    def stock_value_change(self) -> Decimal:
        return self.current.stock_adjustment - self.previous.stock_adjustment

    @property
    def revenue_growth_rate(self) -> Decimal:
        return growth_rate(self.current.revenue, self.previous.revenue)

    @property
    def profit_growth_rate(self) -> Decimal:
        return growth_rate(self.current.net_profit, self.previous.net_profit)


@dataclass
class ClosureCheck:
    warnings: List[str]
    projected_net_profit: Decimal
    current_gross_profit: Decimal
    stock_adjustment: Decimal

    @property
    def is_valid(self) -> bool:
        return not self.warnings


@dataclass
class ProfitTrends:
    years: List[YearProfit]

    def _average(self, values: List[Decimal]) -> Decimal:
        return sum(values, ZERO) / len(values) if values else ZERO

    @property
    def average_revenue(self) -> Decimal:
        return self._average([y.revenue for y in self.years])

    @property
    def average_expenses(self) -> Decimal:
        return self._average([y.expenses for y in self.years])

    @property
    def average_net_profit(self) -> Decimal:
        return self._average([y.net_profit for y in self.years])

    @property
    def average_profit_margin(self) -> Decimal:
        return self._average([y.profit_margin for y in self.years])


# =========================================================================
# SERVICE
# =========================================================================

class ProfitCalculationService:
    """Aggregates ledger postings into profit figures. Never writes."""

    def __init__(self, db: AsyncSession, clock: Clock = utc_now):
        self.db = db
        self.clock = clock

    async def _get_year(self, year_id: uuid.UUID, shop_id: uuid.UUID) -> FinancialYear:
        result = await self.db.execute(
            select(FinancialYear).where(and_(FinancialYear.id == year_id, FinancialYear.shop_id == shop_id))
        )
        year = result.scalar_one_or_none()
        if not year:
            raise NotFoundException("FinancialYear", year_id)
        return year

    async def _sum_by_account_type(
        self,
        year_id: uuid.UUID,
        shop_id: uuid.UUID,
        side,
        account_type: AccountType,
    ) -> Decimal:
        account = aliased(Account)
        result = await self.db.execute(
            select(func.coalesce(func.sum(Transaction.amount), 0))
            .select_from(Transaction)
            .join(account, account.id == side)
            .where(and_(
                Transaction.financial_year_id == year_id,
                Transaction.shop_id == shop_id,
                account.account_type == account_type,
            ))
        )
        return Decimal(str(result.scalar() or 0))

    async def _revenue_and_expenses(self, year_id: uuid.UUID, shop_id: uuid.UUID):
        revenue = await self._sum_by_account_type(
            year_id, shop_id, Transaction.credit_account_id, AccountType.REVENUE
        )
        expenses = await self._sum_by_account_type(
            year_id, shop_id, Transaction.debit_account_id, AccountType.EXPENSE
        )
        return revenue, expenses

    async def _profit_for(self, year: FinancialYear) -> YearProfit:
        revenue, expenses = await self._revenue_and_expenses(year.id, year.shop_id)
        return YearProfit(
            financial_year_id=year.id,
            financial_year_name=year.name,
            revenue=revenue,
            expenses=expenses,
            opening_stock_value=Decimal(str(year.opening_stock_value or 0)),
            closing_stock_value=(
                Decimal(str(year.closing_stock_value)) if year.closing_stock_value is not None else None
            ),
            calculated_at=self.clock(),
        )

    async def calculate_year_profit(self, year_id: uuid.UUID, shop_id: uuid.UUID) -> YearProfit:
        year = await self._get_year(year_id, shop_id)
        return await self._profit_for(year)

    async def calculate_shop_profits(self, shop_id: uuid.UUID) -> ShopProfits:
        """Profit of every year of the shop, newest first, with totals."""
        result = await self.db.execute(
            select(FinancialYear)
            .where(FinancialYear.shop_id == shop_id)
            .order_by(FinancialYear.start_date.desc())
        )
        years = list(result.scalars().all())
        if not years:
            raise NotFoundException("FinancialYear", message=f"No financial years found for shop '{shop_id}'")

        summary = ShopProfits(years=[])
        for year in years:
            try:
                profit = await self._profit_for(year)
            except AppException as e:
                logger.error(f"Failed to calculate profit for financial year {year.id}: {e.message}")
                summary.skipped_year_ids.append(year.id)
                continue
            summary.years.append(profit)
            summary.total_revenue += profit.revenue
            summary.total_expenses += profit.expenses
            summary.total_net_profit += profit.net_profit
            summary.total_stock_adjustment += profit.stock_adjustment
        return summary

    async def compare_profits(
        self,
        current_year_id: uuid.UUID,
        previous_year_id: uuid.UUID,
        shop_id: uuid.UUID,
    ) -> ProfitComparison:
        current = await self.calculate_year_profit(current_year_id, shop_id)
        previous = await self.calculate_year_profit(previous_year_id, shop_id)
        return ProfitComparison(current=current, previous=previous)

    async def validate_year_closure(
        self,
        year_id: uuid.UUID,
        shop_id: uuid.UUID,
        proposed_closing_stock_value: Decimal,
    ) -> ClosureCheck:
        """Preview of closing a year; warnings are advisory."""
        year = await self._get_year(year_id, shop_id)
        revenue, expenses = await self._revenue_and_expenses(year.id, shop_id)
        proposed = Decimal(str(proposed_closing_stock_value))
        opening = Decimal(str(year.opening_stock_value or 0))
        gross = revenue - expenses
        adjustment = proposed - opening
        return ClosureCheck(
            warnings=closure_warnings(revenue, expenses, opening, proposed),
            projected_net_profit=gross + adjustment,
            current_gross_profit=gross,
            stock_adjustment=adjustment,
        )

    async def get_profit_trends(
        self,
        shop_id: uuid.UUID,
        year_count: int = settings.default_trend_years,
    ) -> ProfitTrends:
        """Profit of the most recent closed years, oldest first."""
        if not 1 <= year_count <= settings.max_trend_years:
            raise InvalidOperationException(
                f"year_count must be between 1 and {settings.max_trend_years}", field="year_count"
            )
        result = await self.db.execute(
            select(FinancialYear)
            .where(and_(FinancialYear.shop_id == shop_id, FinancialYear.is_closed == True))
            .order_by(FinancialYear.start_date.desc())
            .limit(year_count)
        )
        years = [await self._profit_for(year) for year in result.scalars().all()]
        years.reverse()
        return ProfitTrends(years=years)

"""
ShopLedger - Financial Year Service

Lifecycle of a shop's financial years:
- Creation with non-overlapping date ranges and automatic current year
- Switching the current year
- Audited opening/closing stock value changes, single and bulk
- Irreversible closing with a closure sanity check
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from sqlalchemy import and_, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import atomic
from app.models.financial_year import FinancialYear, StockValueField, StockValueHistory
from app.models.transaction import Transaction
from app.services.profit_calculation_service import ProfitCalculationService
from app.utils.clock import Clock, utc_now
from app.utils.error_handling import (
    ClosedPeriodException,
    ConflictException,
    ErrorCode,
    ForbiddenOperationException,
    InvalidAmountException,
    InvalidDateRangeException,
    InvalidOperationException,
    NotFoundException,
    OverlappingPeriodException,
)

logger = logging.getLogger(__name__)


@dataclass
class StockValueUpdate:
    """One item of a bulk stock value update; unset values are left alone."""
    shop_id: uuid.UUID
    financial_year_id: uuid.UUID
    opening_stock_value: Optional[Decimal] = None
    closing_stock_value: Optional[Decimal] = None


def _non_negative(value: Optional[Decimal], field: str) -> Optional[Decimal]:
    if value is None:
        return None
    value = Decimal(str(value))
    if value < 0:
        raise InvalidAmountException(value, field=field, message=f"{field} cannot be negative")
    return value


class FinancialYearService:
    """Service for financial year lifecycle operations."""

    def __init__(self, db: AsyncSession, clock: Clock = utc_now):
        self.db = db
        self.clock = clock

    # =========================================================================
    # LOOKUPS
    # =========================================================================

    async def get_by_id(self, year_id: uuid.UUID, shop_id: Optional[uuid.UUID] = None) -> FinancialYear:
        query = select(FinancialYear).where(FinancialYear.id == year_id)
        if shop_id is not None:
            query = query.where(FinancialYear.shop_id == shop_id)
        result = await self.db.execute(query)
        year = result.scalar_one_or_none()
        if not year:
            raise NotFoundException("FinancialYear", year_id)
        return year

    async def list_for_shop(self, shop_id: uuid.UUID) -> List[Tuple[FinancialYear, int]]:
        """Years of a shop with their posting counts; current first, then newest."""
        counts = (
            select(Transaction.financial_year_id, func.count(Transaction.id).label("n"))
            .group_by(Transaction.financial_year_id)
            .subquery()
        )
        result = await self.db.execute(
            select(FinancialYear, func.coalesce(counts.c.n, 0))
            .outerjoin(counts, counts.c.financial_year_id == FinancialYear.id)
            .where(FinancialYear.shop_id == shop_id)
            .order_by(FinancialYear.is_current.desc(), FinancialYear.start_date.desc())
        )
        return [(row[0], row[1]) for row in result.all()]

    async def get_current_for_shop(self, shop_id: uuid.UUID) -> Optional[FinancialYear]:
        result = await self.db.execute(
            select(FinancialYear).where(and_(
                FinancialYear.shop_id == shop_id,
                FinancialYear.is_current == True,
            ))
        )
        return result.scalar_one_or_none()

    async def count_transactions(self, year_id: uuid.UUID) -> int:
        result = await self.db.execute(
            select(func.count(Transaction.id)).where(Transaction.financial_year_id == year_id)
        )
        return result.scalar() or 0

    async def get_stock_value_history(self, year_id: uuid.UUID, shop_id: uuid.UUID) -> List[StockValueHistory]:
        await self.get_by_id(year_id, shop_id)
        result = await self.db.execute(
            select(StockValueHistory)
            .where(StockValueHistory.financial_year_id == year_id)
            .order_by(StockValueHistory.changed_at)
        )
        return list(result.scalars().all())

    # =========================================================================
    # VALIDATION
    # =========================================================================

    @staticmethod
    def _ensure_range(start_date: date, end_date: date) -> None:
        if end_date <= start_date:
            raise InvalidDateRangeException(start_date.isoformat(), end_date.isoformat())

    async def _ensure_no_overlap(
        self,
        shop_id: uuid.UUID,
        start_date: date,
        end_date: date,
        exclude_id: Optional[uuid.UUID] = None,
    ) -> None:
        conditions = [
            FinancialYear.shop_id == shop_id,
            FinancialYear.start_date <= end_date,
            FinancialYear.end_date >= start_date,
        ]
        if exclude_id is not None:
            conditions.append(FinancialYear.id != exclude_id)
        result = await self.db.execute(select(FinancialYear.name).where(and_(*conditions)))
        overlapping = list(result.scalars().all())
        if overlapping:
            raise OverlappingPeriodException(overlapping)

    async def validate_transaction_year(self, year_id: uuid.UUID, shop_id: Optional[uuid.UUID] = None) -> FinancialYear:
        """Return the year if postings may be recorded in it."""
        year = await self.get_by_id(year_id, shop_id)
        if year.is_closed:
            raise ClosedPeriodException(year.id, "record transactions")
        return year

    def _audit(
        self,
        year: FinancialYear,
        field: StockValueField,
        new_value: Decimal,
        changed_by: Optional[uuid.UUID],
    ) -> StockValueHistory:
        entry = StockValueHistory(
            financial_year_id=year.id,
            field_changed=field,
            old_value=getattr(year, field.value),
            new_value=new_value,
            changed_at=self.clock(),
            changed_by=changed_by,
        )
        setattr(year, field.value, new_value)
        self.db.add(entry)
        return entry

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    async def create(
        self,
        shop_id: uuid.UUID,
        name: str,
        start_date: date,
        end_date: date,
        opening_stock_value: Decimal = Decimal("0"),
    ) -> FinancialYear:
        """Create a year; it becomes current when the shop has none."""
        self._ensure_range(start_date, end_date)
        opening = _non_negative(opening_stock_value, "opening_stock_value")
        await self._ensure_no_overlap(shop_id, start_date, end_date)
        has_current = await self.get_current_for_shop(shop_id) is not None

        year = FinancialYear(
            shop_id=shop_id,
            name=name,
            start_date=start_date,
            end_date=end_date,
            opening_stock_value=opening,
            is_current=not has_current,
            is_closed=False,
        )
        async with atomic(self.db):
            self.db.add(year)
        await self.db.refresh(year)
        logger.info(f"Created financial year {name} for shop {shop_id} (current={year.is_current})")
        return year

    async def update(
        self,
        year_id: uuid.UUID,
        shop_id: uuid.UUID,
        name: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        opening_stock_value: Optional[Decimal] = None,
        changed_by: Optional[uuid.UUID] = None,
    ) -> FinancialYear:
        year = await self.get_by_id(year_id, shop_id)
        if year.is_closed:
            raise ClosedPeriodException(year.id, "update")

        new_start = start_date or year.start_date
        new_end = end_date or year.end_date
        if start_date is not None or end_date is not None:
            self._ensure_range(new_start, new_end)
            await self._ensure_no_overlap(shop_id, new_start, new_end, exclude_id=year.id)
        opening = _non_negative(opening_stock_value, "opening_stock_value")

        async with atomic(self.db):
            if name is not None:
                year.name = name
            year.start_date = new_start
            year.end_date = new_end
            if opening is not None and opening != year.opening_stock_value:
                self._audit(year, StockValueField.OPENING, opening, changed_by)
        await self.db.refresh(year)
        return year

    async def set_current(self, year_id: uuid.UUID, shop_id: uuid.UUID) -> FinancialYear:
        """Make one open year the shop's only current year."""
        year = await self.get_by_id(year_id, shop_id)
        if year.is_closed:
            raise ClosedPeriodException(year.id, "set as current")

        async with atomic(self.db):
            await self.db.execute(
                update(FinancialYear)
                .where(and_(FinancialYear.shop_id == shop_id, FinancialYear.is_current == True))
                .values(is_current=False)
                .execution_options(synchronize_session="fetch")
            )
            year.is_current = True
        await self.db.refresh(year)
        logger.info(f"Financial year {year.name} is now current for shop {shop_id}")
        return year

    async def update_stock_value(
        self,
        shop_id: uuid.UUID,
        year_id: uuid.UUID,
        field: StockValueField,
        value: Decimal,
        changed_by: Optional[uuid.UUID] = None,
    ) -> FinancialYear:
        value = _non_negative(value, field.value)
        year = await self.get_by_id(year_id, shop_id)
        if year.is_closed:
            raise ClosedPeriodException(year.id, f"update {field.value}")

        async with atomic(self.db):
            self._audit(year, field, value, changed_by)
        await self.db.refresh(year)
        return year

    async def update_opening_stock_value(
        self,
        shop_id: uuid.UUID,
        year_id: uuid.UUID,
        value: Decimal,
        changed_by: Optional[uuid.UUID] = None,
    ) -> FinancialYear:
        return await self.update_stock_value(shop_id, year_id, StockValueField.OPENING, value, changed_by)

    async def update_closing_stock_value(
        self,
        shop_id: uuid.UUID,
        year_id: uuid.UUID,
        value: Decimal,
        changed_by: Optional[uuid.UUID] = None,
    ) -> FinancialYear:
        return await self.update_stock_value(shop_id, year_id, StockValueField.CLOSING, value, changed_by)

    async def bulk_update_stock_values(
        self,
        updates: List[StockValueUpdate],
        changed_by: Optional[uuid.UUID] = None,
    ) -> List[FinancialYear]:
        """
        Apply several stock value updates all-or-nothing.

        Every item is validated before anything is written; any failure
        leaves all years untouched.
        """
        if not updates:
            raise InvalidOperationException("At least one update is required", field="updates")

        years: Dict[uuid.UUID, FinancialYear] = {}
        for item in updates:
            _non_negative(item.opening_stock_value, "opening_stock_value")
            _non_negative(item.closing_stock_value, "closing_stock_value")
            year = await self.get_by_id(item.financial_year_id, item.shop_id)
            if year.is_closed:
                raise ClosedPeriodException(year.id, "update stock values")
            years[year.id] = year

        async with atomic(self.db):
            for item in updates:
                year = years[item.financial_year_id]
                if item.opening_stock_value is not None:
                    self._audit(year, StockValueField.OPENING, Decimal(str(item.opening_stock_value)), changed_by)
                if item.closing_stock_value is not None:
                    self._audit(year, StockValueField.CLOSING, Decimal(str(item.closing_stock_value)), changed_by)

        logger.info(f"Bulk updated stock values of {len(years)} financial year(s)")
        return list(years.values())

    async def close(
        self,
        year_id: uuid.UUID,
        shop_id: uuid.UUID,
        closing_stock_value: Decimal,
        closed_by: Optional[uuid.UUID] = None,
    ) -> FinancialYear:
        """
        Close a non-current year with its final closing stock value.

        Closure warnings are logged but do not block. Closing is irreversible.
        """
        closing = _non_negative(closing_stock_value, "closing_stock_value")
        year = await self.get_by_id(year_id, shop_id)
        if year.is_closed:
            raise ConflictException(
                f"Financial year '{year.name}' is already closed",
                resource_type="FinancialYear",
                code=ErrorCode.ALREADY_CLOSED,
            )
        if year.is_current:
            raise ForbiddenOperationException(
                f"Financial year '{year.name}' is current; set another year as current before closing it",
            )

        check = await ProfitCalculationService(self.db).validate_year_closure(year.id, shop_id, closing)
        for warning in check.warnings:
            logger.warning(f"Closing financial year {year.name}: {warning}")

        async with atomic(self.db):
            self._audit(year, StockValueField.CLOSING, closing, closed_by)
            year.is_closed = True
            year.closed_at = self.clock()
        await self.db.refresh(year)
        logger.info(f"Closed financial year {year.name} for shop {shop_id} with closing stock {closing}")
        return year

    async def delete(self, year_id: uuid.UUID, shop_id: uuid.UUID) -> None:
        year = await self.get_by_id(year_id, shop_id)
        if year.is_closed:
            raise ClosedPeriodException(year.id, "delete")
        if year.is_current:
            raise ForbiddenOperationException(f"Financial year '{year.name}' is current and cannot be deleted")
        postings = await self.count_transactions(year.id)
        if postings:
            raise ForbiddenOperationException(
                f"Financial year '{year.name}' has {postings} transaction(s) and cannot be deleted",
                details={"transaction_count": postings},
            )
        async with atomic(self.db):
            await self.db.delete(year)
        logger.info(f"Deleted financial year {year.name} from shop {shop_id}")

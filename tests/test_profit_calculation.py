"""
ShopLedger - Profit Calculation Tests

Pure profit arithmetic plus aggregation over recorded postings.
"""

from decimal import Decimal

import pytest

from app.models.transaction import TransactionType
from app.services.chart_of_accounts_service import ChartOfAccountsService
from app.services.financial_year_service import FinancialYearService
from app.services.ledger_transaction_service import LedgerTransactionService, PostingRequest
from app.services.profit_calculation_service import (
    LARGE_CHANGE_WARNING,
    NEGATIVE_CLOSING_WARNING,
    NEGATIVE_PROFIT_WARNING,
    ProfitCalculationService,
    closure_warnings,
    growth_rate,
    profit_margin,
    stock_adjustment,
)
from app.services.shop_service import ShopService
from app.utils.error_handling import InvalidOperationException, NotFoundException


async def _post(db_session, clock, shop, user_id, debit_id, credit_id, amount, transaction_type, year_id=None):
    await LedgerTransactionService(db_session, clock=clock).record_transaction(
        shop.id,
        user_id,
        PostingRequest(
            transaction_type=transaction_type,
            amount=Decimal(amount),
            debit_account_id=debit_id,
            credit_account_id=credit_id,
            financial_year_id=year_id,
        ),
    )


async def _trade(db_session, clock, shop, user_id, accounts, sales, purchases, year_id=None):
    await _post(db_session, clock, shop, user_id, accounts.cash_id, accounts.direct_sales_id,
                sales, TransactionType.SALE, year_id)
    await _post(db_session, clock, shop, user_id, accounts.direct_purchases_id, accounts.cash_id,
                purchases, TransactionType.PURCHASE, year_id)


class TestPureCalculations:
    """Arithmetic helpers."""

    def test_stock_adjustment_is_zero_without_closing_value(self):
        assert stock_adjustment(Decimal("10000"), None) == Decimal("0")
        assert stock_adjustment(Decimal("10000"), Decimal("12000")) == Decimal("2000")

    def test_growth_rate(self):
        assert growth_rate(Decimal("150"), Decimal("100")) == Decimal("50")
        assert growth_rate(Decimal("50"), Decimal("100")) == Decimal("-50")
        assert growth_rate(Decimal("50"), Decimal("0")) == Decimal("0")

    def test_profit_margin(self):
        assert profit_margin(Decimal("22000"), Decimal("50000")) == Decimal("44")
        assert profit_margin(Decimal("100"), Decimal("0")) == Decimal("0")

    def test_closure_warnings(self):
        assert closure_warnings(Decimal("50000"), Decimal("30000"), Decimal("10000"), Decimal("12000")) == []

        negative = closure_warnings(Decimal("50000"), Decimal("30000"), Decimal("10000"), Decimal("-1"))
        assert NEGATIVE_CLOSING_WARNING in negative

        large = closure_warnings(Decimal("1000"), Decimal("500"), Decimal("0"), Decimal("900"))
        assert large == [LARGE_CHANGE_WARNING]

        wipes_out = closure_warnings(Decimal("50000"), Decimal("30000"), Decimal("40000"), Decimal("10000"))
        assert NEGATIVE_PROFIT_WARNING in wipes_out


class TestYearProfit:
    """Profit of a single year from postings."""

    @pytest.mark.asyncio
    async def test_net_profit_includes_stock_change(
        self, db_session, shop, current_year, system_accounts, user_id, clock
    ):
        await _trade(db_session, clock, shop, user_id, system_accounts, "50000", "30000")
        await FinancialYearService(db_session, clock=clock).update_closing_stock_value(
            shop.id, current_year.id, Decimal("12000")
        )

        profit = await ProfitCalculationService(db_session, clock=clock).calculate_year_profit(
            current_year.id, shop.id
        )

        assert profit.revenue == Decimal("50000")
        assert profit.expenses == Decimal("30000")
        assert profit.gross_profit == Decimal("20000")
        assert profit.stock_adjustment == Decimal("2000")
        assert profit.net_profit == Decimal("22000")
        assert profit.profit_margin == Decimal("44")
        assert profit.calculated_at == clock()

    @pytest.mark.asyncio
    async def test_open_year_without_closing_value(
        self, db_session, shop, current_year, system_accounts, user_id, clock
    ):
        await _trade(db_session, clock, shop, user_id, system_accounts, "50000", "30000")

        profit = await ProfitCalculationService(db_session, clock=clock).calculate_year_profit(
            current_year.id, shop.id
        )

        assert profit.stock_adjustment == Decimal("0")
        assert profit.net_profit == Decimal("20000")

    @pytest.mark.asyncio
    async def test_empty_year_has_zero_profit(self, db_session, shop, current_year, clock):
        profit = await ProfitCalculationService(db_session, clock=clock).calculate_year_profit(
            current_year.id, shop.id
        )

        assert profit.revenue == Decimal("0")
        assert profit.profit_margin == Decimal("0")

    @pytest.mark.asyncio
    async def test_only_revenue_and_expense_sides_count(
        self, db_session, shop, current_year, system_accounts, user_id, clock
    ):
        # Owner's capital: Dr cash / Cr equity moves neither revenue nor expenses
        equity = (await ChartOfAccountsService(db_session).get_by_code("EQUITY-S1", shop.id)).id
        await _post(db_session, clock, shop, user_id, system_accounts.cash_id, equity,
                    "99999", TransactionType.OPENING_BALANCE)

        profit = await ProfitCalculationService(db_session, clock=clock).calculate_year_profit(
            current_year.id, shop.id
        )

        assert profit.revenue == Decimal("0")
        assert profit.expenses == Decimal("0")

    @pytest.mark.asyncio
    async def test_year_of_another_shop_is_not_found(self, db_session, shop, current_year, clock):
        other = await ShopService(db_session).create_shop("S2", "متجر اثنان", "Shop Two")

        with pytest.raises(NotFoundException):
            await ProfitCalculationService(db_session, clock=clock).calculate_year_profit(
                current_year.id, other.shop.id
            )


class TestMultiYear:
    """Shop totals, comparisons and trends."""

    @pytest.mark.asyncio
    async def test_shop_without_years_is_not_found(self, db_session, shop, clock):
        with pytest.raises(NotFoundException):
            await ProfitCalculationService(db_session, clock=clock).calculate_shop_profits(shop.id)

    @pytest.mark.asyncio
    async def test_shop_totals_newest_first(
        self, db_session, shop, current_year, previous_year, system_accounts, user_id, clock
    ):
        await _trade(db_session, clock, shop, user_id, system_accounts, "50000", "30000")
        await _trade(db_session, clock, shop, user_id, system_accounts, "40000", "25000", previous_year.id)

        summary = await ProfitCalculationService(db_session, clock=clock).calculate_shop_profits(shop.id)

        assert [y.financial_year_name for y in summary.years] == ["FY2025", "FY2024"]
        assert summary.total_revenue == Decimal("90000")
        assert summary.total_expenses == Decimal("55000")
        assert summary.total_net_profit == Decimal("35000")
        assert summary.skipped_year_ids == []

    @pytest.mark.asyncio
    async def test_compare_profits(
        self, db_session, shop, current_year, previous_year, system_accounts, user_id, clock
    ):
        await _trade(db_session, clock, shop, user_id, system_accounts, "50000", "30000")
        await _trade(db_session, clock, shop, user_id, system_accounts, "40000", "25000", previous_year.id)

        comparison = await ProfitCalculationService(db_session, clock=clock).compare_profits(
            current_year.id, previous_year.id, shop.id
        )

        assert comparison.revenue_change == Decimal("10000")
        assert comparison.expense_change == Decimal("5000")
        assert comparison.net_profit_change == Decimal("5000")
        assert comparison.revenue_growth_rate == Decimal("25")

    @pytest.mark.asyncio
    async def test_trends_only_use_closed_years(
        self, db_session, shop, current_year, previous_year, system_accounts, user_id, clock
    ):
        await _trade(db_session, clock, shop, user_id, system_accounts, "40000", "25000", previous_year.id)
        await FinancialYearService(db_session, clock=clock).close(previous_year.id, shop.id, Decimal("9000"))

        trends = await ProfitCalculationService(db_session, clock=clock).get_profit_trends(shop.id, 5)

        assert [y.financial_year_name for y in trends.years] == ["FY2024"]
        assert trends.average_net_profit == Decimal("16000")

    @pytest.mark.asyncio
    async def test_trend_year_count_is_bounded(self, db_session, shop, clock):
        service = ProfitCalculationService(db_session, clock=clock)

        with pytest.raises(InvalidOperationException):
            await service.get_profit_trends(shop.id, 0)
        with pytest.raises(InvalidOperationException):
            await service.get_profit_trends(shop.id, 11)


class TestClosureCheck:
    """Closing stock previews."""

    @pytest.mark.asyncio
    async def test_reasonable_closing_value_is_valid(
        self, db_session, shop, current_year, system_accounts, user_id, clock
    ):
        await _trade(db_session, clock, shop, user_id, system_accounts, "50000", "30000")

        check = await ProfitCalculationService(db_session, clock=clock).validate_year_closure(
            current_year.id, shop.id, Decimal("12000")
        )

        assert check.is_valid
        assert check.current_gross_profit == Decimal("20000")
        assert check.stock_adjustment == Decimal("2000")
        assert check.projected_net_profit == Decimal("22000")

    @pytest.mark.asyncio
    async def test_negative_closing_value_is_flagged(
        self, db_session, shop, current_year, system_accounts, user_id, clock
    ):
        await _trade(db_session, clock, shop, user_id, system_accounts, "50000", "30000")

        check = await ProfitCalculationService(db_session, clock=clock).validate_year_closure(
            current_year.id, shop.id, Decimal("-1")
        )

        assert not check.is_valid
        assert NEGATIVE_CLOSING_WARNING in check.warnings

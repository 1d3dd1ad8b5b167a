"""
ShopLedger - Cash/Bank Balance Ledger Tests
"""

from decimal import Decimal

import pytest
from sqlalchemy.exc import IntegrityError

from app.models.cash_bank import CashAccount, PaymentAccountKind
from app.services.balance_ledger_service import BalanceHistoryFilter, BalanceLedgerService
from app.utils.error_handling import (
    ForbiddenOperationException,
    InvalidOperationException,
    NotFoundException,
)


class TestPaymentAccounts:
    """Cash and bank account management."""

    @pytest.mark.asyncio
    async def test_opening_balance_becomes_current(self, db_session, shop):
        service = BalanceLedgerService(db_session)

        drawer = await service.create_cash_account(shop.id, "الدرج", "Drawer", Decimal("250"))

        assert drawer.current_balance == Decimal("250")
        assert drawer.opening_balance == Decimal("250")

    @pytest.mark.asyncio
    async def test_negative_opening_balance_is_rejected(self, db_session, shop):
        service = BalanceLedgerService(db_session)

        with pytest.raises(InvalidOperationException):
            await service.create_cash_account(shop.id, "الدرج", "Drawer", Decimal("-1"))

    @pytest.mark.asyncio
    async def test_one_default_per_kind(self, db_session, shop):
        service = BalanceLedgerService(db_session)
        first = await service.create_cash_account(shop.id, "أول", "First", is_default=True)
        second = await service.create_cash_account(shop.id, "ثان", "Second", is_default=True)
        bank = await service.create_bank_account(
            shop.id, "بنك", "Bank", "0001", "National Bank", is_default=True
        )

        await db_session.refresh(first)
        assert first.is_default is False
        assert second.is_default is True
        assert (await service.get_default_account(PaymentAccountKind.CASH, shop.id)).id == second.id
        assert (await service.get_default_account(PaymentAccountKind.BANK, shop.id)).id == bank.id

        await service.set_default(PaymentAccountKind.CASH, first.id, shop.id)
        await db_session.refresh(second)
        assert second.is_default is False

        listed = await service.list_accounts(PaymentAccountKind.CASH, shop.id)
        assert listed[0].id == first.id

    @pytest.mark.asyncio
    async def test_storage_allows_one_default_per_kind(self, db_session, shop):
        for name in ("First", "Second"):
            db_session.add(CashAccount(shop_id=shop.id, name_local=name, name_global=name, is_default=True))

        with pytest.raises(IntegrityError):
            await db_session.commit()
        await db_session.rollback()

    @pytest.mark.asyncio
    async def test_inactive_account_cannot_be_default(self, db_session, shop):
        service = BalanceLedgerService(db_session)
        drawer = await service.create_cash_account(shop.id, "الدرج", "Drawer")
        await service.update_account(PaymentAccountKind.CASH, drawer.id, shop.id, is_active=False)

        with pytest.raises(ForbiddenOperationException):
            await service.set_default(PaymentAccountKind.CASH, drawer.id, shop.id)

        active = await service.list_accounts(PaymentAccountKind.CASH, shop.id, include_inactive=False)
        assert active == []

    @pytest.mark.asyncio
    async def test_balance_fields_cannot_be_patched(self, db_session, shop):
        service = BalanceLedgerService(db_session)
        drawer = await service.create_cash_account(shop.id, "الدرج", "Drawer")

        with pytest.raises(InvalidOperationException):
            await service.update_account(
                PaymentAccountKind.CASH, drawer.id, shop.id, current_balance=Decimal("1000")
            )

    @pytest.mark.asyncio
    async def test_kinds_do_not_mix(self, db_session, shop):
        service = BalanceLedgerService(db_session)
        drawer = await service.create_cash_account(shop.id, "الدرج", "Drawer")

        with pytest.raises(NotFoundException):
            await service.get_account(PaymentAccountKind.BANK, drawer.id, shop.id)


class TestBalanceHistory:
    """Audited balance changes."""

    @pytest.mark.asyncio
    async def test_update_balance_appends_history(self, db_session, shop, user_id):
        service = BalanceLedgerService(db_session)
        drawer = await service.create_cash_account(shop.id, "الدرج", "Drawer", Decimal("100"))

        entry = await service.update_balance(
            PaymentAccountKind.CASH, drawer.id, Decimal("175.50"), "  count  ", user_id, shop.id
        )

        assert entry.previous_balance == Decimal("100")
        assert entry.new_balance == Decimal("175.50")
        assert entry.change_amount == Decimal("75.50")
        assert entry.change_reason == "count"
        assert entry.user_id == user_id
        assert drawer.current_balance == Decimal("175.50")

        latest = await service.get_latest_history(PaymentAccountKind.CASH, drawer.id, shop.id)
        assert latest.id == entry.id

    @pytest.mark.asyncio
    async def test_blank_reason_is_rejected(self, db_session, shop, user_id):
        service = BalanceLedgerService(db_session)
        drawer = await service.create_cash_account(shop.id, "الدرج", "Drawer")

        with pytest.raises(InvalidOperationException):
            await service.update_balance(PaymentAccountKind.CASH, drawer.id, Decimal("5"), "   ", user_id, shop.id)

        assert await service.get_latest_history(PaymentAccountKind.CASH, drawer.id, shop.id) is None

    @pytest.mark.asyncio
    async def test_shop_history_filters_by_kind(self, db_session, shop, user_id):
        service = BalanceLedgerService(db_session)
        drawer = await service.create_cash_account(shop.id, "الدرج", "Drawer")
        bank = await service.create_bank_account(shop.id, "بنك", "Bank", "0001", "National Bank")
        await service.update_balance(PaymentAccountKind.CASH, drawer.id, Decimal("10"), "float", user_id, shop.id)
        await service.update_balance(PaymentAccountKind.BANK, bank.id, Decimal("900"), "deposit", user_id, shop.id)

        everything = await service.get_shop_history(shop.id)
        bank_only = await service.get_shop_history(
            shop.id, BalanceHistoryFilter(account_kind=PaymentAccountKind.BANK)
        )

        assert len(everything) == 2
        assert [e.change_reason for e in bank_only] == ["deposit"]

    @pytest.mark.asyncio
    async def test_account_with_history_cannot_be_deleted(self, db_session, shop, user_id):
        service = BalanceLedgerService(db_session)
        drawer = await service.create_cash_account(shop.id, "الدرج", "Drawer")
        spare = await service.create_cash_account(shop.id, "احتياطي", "Spare")
        await service.update_balance(PaymentAccountKind.CASH, drawer.id, Decimal("10"), "float", user_id, shop.id)

        with pytest.raises(ForbiddenOperationException):
            await service.delete_account(PaymentAccountKind.CASH, drawer.id, shop.id)

        await service.delete_account(PaymentAccountKind.CASH, spare.id, shop.id)
        remaining = await service.list_accounts(PaymentAccountKind.CASH, shop.id)
        assert [a.name_global for a in remaining] == ["Drawer"]

    @pytest.mark.asyncio
    async def test_movement_on_inactive_account_is_forbidden(self, db_session, shop, user_id):
        service = BalanceLedgerService(db_session)
        drawer = await service.create_cash_account(shop.id, "الدرج", "Drawer")
        await service.update_account(PaymentAccountKind.CASH, drawer.id, shop.id, is_active=False)

        with pytest.raises(ForbiddenOperationException):
            await service.apply_movement(PaymentAccountKind.CASH, drawer.id, Decimal("5"), "sale", user_id, shop.id)

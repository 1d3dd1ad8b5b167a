"""
ShopLedger - Balance Ledger Service

Cash and bank accounts with running balances. Every balance change is
written together with a BalanceHistory row in one unit of work.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import List, Optional, Type, Union

from sqlalchemy import and_, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database import atomic
from app.models.cash_bank import BalanceHistory, BankAccount, CashAccount, PaymentAccountKind
from app.utils.error_handling import (
    ForbiddenOperationException,
    InvalidOperationException,
    NotFoundException,
)

logger = logging.getLogger(__name__)

PaymentAccount = Union[CashAccount, BankAccount]

MODELS = {
    PaymentAccountKind.CASH: CashAccount,
    PaymentAccountKind.BANK: BankAccount,
}


@dataclass
class BalanceHistoryFilter:
    """Optional filters for history queries; unset fields do not filter."""
    account_kind: Optional[PaymentAccountKind] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    offset: int = 0
    limit: int = settings.default_page_size


def _model(kind: PaymentAccountKind) -> Type[PaymentAccount]:
    return MODELS[PaymentAccountKind(kind)]


class BalanceLedgerService:
    """Service for cash/bank accounts and their balance history."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # =========================================================================
    # ACCOUNTS
    # =========================================================================

    async def get_account(
        self,
        kind: PaymentAccountKind,
        account_id: uuid.UUID,
        shop_id: uuid.UUID,
    ) -> PaymentAccount:
        model = _model(kind)
        result = await self.db.execute(
            select(model).where(and_(model.id == account_id, model.shop_id == shop_id))
        )
        account = result.scalar_one_or_none()
        if not account:
            raise NotFoundException(f"{model.__name__}", account_id)
        return account

    async def list_accounts(
        self,
        kind: PaymentAccountKind,
        shop_id: uuid.UUID,
        include_inactive: bool = True,
    ) -> List[PaymentAccount]:
        """Default account first, then newest first."""
        model = _model(kind)
        query = select(model).where(model.shop_id == shop_id)
        if not include_inactive:
            query = query.where(model.is_active == True)
        result = await self.db.execute(query.order_by(model.is_default.desc(), model.created_at.desc()))
        return list(result.scalars().all())

    async def get_default_account(
        self,
        kind: PaymentAccountKind,
        shop_id: uuid.UUID,
    ) -> Optional[PaymentAccount]:
        model = _model(kind)
        result = await self.db.execute(
            select(model).where(and_(
                model.shop_id == shop_id,
                model.is_default == True,
                model.is_active == True,
            ))
        )
        return result.scalar_one_or_none()

    async def _clear_default(self, kind: PaymentAccountKind, shop_id: uuid.UUID) -> None:
        model = _model(kind)
        await self.db.execute(
            update(model)
            .where(and_(model.shop_id == shop_id, model.is_default == True))
            .values(is_default=False)
            .execution_options(synchronize_session="fetch")
        )

    async def _create(self, account: PaymentAccount) -> PaymentAccount:
        if account.opening_balance is not None and Decimal(str(account.opening_balance)) < 0:
            raise InvalidOperationException("Opening balance cannot be negative", field="opening_balance")
        account.current_balance = account.opening_balance
        async with atomic(self.db):
            if account.is_default:
                await self._clear_default(account.kind, account.shop_id)
            self.db.add(account)
        await self.db.refresh(account)
        logger.info(f"Created {account.kind.value} account {account.name_global} for shop {account.shop_id}")
        return account

    async def create_cash_account(
        self,
        shop_id: uuid.UUID,
        name_local: str,
        name_global: str,
        opening_balance: Decimal = Decimal("0"),
        is_default: bool = False,
    ) -> CashAccount:
        return await self._create(CashAccount(
            shop_id=shop_id,
            name_local=name_local,
            name_global=name_global,
            opening_balance=opening_balance,
            is_default=is_default,
        ))

    async def create_bank_account(
        self,
        shop_id: uuid.UUID,
        name_local: str,
        name_global: str,
        account_number: str,
        bank_name: str,
        iban: Optional[str] = None,
        opening_balance: Decimal = Decimal("0"),
        is_default: bool = False,
    ) -> BankAccount:
        return await self._create(BankAccount(
            shop_id=shop_id,
            name_local=name_local,
            name_global=name_global,
            account_number=account_number,
            bank_name=bank_name,
            iban=iban,
            opening_balance=opening_balance,
            is_default=is_default,
        ))

    async def update_account(
        self,
        kind: PaymentAccountKind,
        account_id: uuid.UUID,
        shop_id: uuid.UUID,
        **changes,
    ) -> PaymentAccount:
        """
        Update descriptive fields and flags.

        Balances are not editable here; use ``update_balance`` so the change
        is audited.
        """
        account = await self.get_account(kind, account_id, shop_id)
        forbidden = {"current_balance", "opening_balance", "shop_id", "id"} & changes.keys()
        if forbidden:
            raise InvalidOperationException(
                f"Field(s) {', '.join(sorted(forbidden))} cannot be changed directly"
            )

        async with atomic(self.db):
            if changes.get("is_default"):
                await self._clear_default(kind, shop_id)
            for key, value in changes.items():
                if value is not None and hasattr(account, key):
                    setattr(account, key, value)
        await self.db.refresh(account)
        return account

    async def set_default(
        self,
        kind: PaymentAccountKind,
        account_id: uuid.UUID,
        shop_id: uuid.UUID,
    ) -> PaymentAccount:
        """Make one account the shop's default of its kind (clear-then-set)."""
        account = await self.get_account(kind, account_id, shop_id)
        if not account.is_active:
            raise ForbiddenOperationException("An inactive account cannot be the default")
        async with atomic(self.db):
            await self._clear_default(kind, shop_id)
            account.is_default = True
        await self.db.refresh(account)
        logger.info(f"Default {kind.value} account for shop {shop_id} is now {account.id}")
        return account

    async def delete_account(
        self,
        kind: PaymentAccountKind,
        account_id: uuid.UUID,
        shop_id: uuid.UUID,
    ) -> None:
        """Delete an account that has never had a balance change; deactivate otherwise."""
        account = await self.get_account(kind, account_id, shop_id)
        result = await self.db.execute(
            select(func.count(BalanceHistory.id)).where(and_(
                BalanceHistory.account_kind == kind,
                BalanceHistory.account_id == account.id,
            ))
        )
        if result.scalar():
            raise ForbiddenOperationException(
                "Account has balance history and cannot be deleted; deactivate it instead",
                details={"account_id": str(account.id)},
            )
        async with atomic(self.db):
            await self.db.delete(account)

    # =========================================================================
    # BALANCES
    # =========================================================================

    def _record(
        self,
        account: PaymentAccount,
        new_balance: Decimal,
        reason: str,
        user_id: uuid.UUID,
    ) -> BalanceHistory:
        previous = Decimal(str(account.current_balance or 0))
        new_balance = Decimal(str(new_balance))
        entry = BalanceHistory(
            shop_id=account.shop_id,
            account_kind=account.kind,
            account_id=account.id,
            previous_balance=previous,
            new_balance=new_balance,
            change_amount=new_balance - previous,
            change_reason=reason,
            user_id=user_id,
        )
        account.current_balance = new_balance
        self.db.add(entry)
        return entry

    async def update_balance(
        self,
        kind: PaymentAccountKind,
        account_id: uuid.UUID,
        new_balance: Decimal,
        reason: str,
        user_id: uuid.UUID,
        shop_id: uuid.UUID,
    ) -> BalanceHistory:
        """Set an account balance and append the matching history row."""
        if not reason or not reason.strip():
            raise InvalidOperationException("A reason is required for every balance change", field="reason")
        account = await self.get_account(kind, account_id, shop_id)

        async with atomic(self.db):
            entry = self._record(account, new_balance, reason.strip(), user_id)
        await self.db.refresh(entry)
        logger.info(
            f"{kind.value} account {account.id} balance {entry.previous_balance} -> "
            f"{entry.new_balance} by {user_id}: {entry.change_reason}"
        )
        return entry

    async def apply_movement(
        self,
        kind: PaymentAccountKind,
        account_id: uuid.UUID,
        delta: Decimal,
        reason: str,
        user_id: uuid.UUID,
        shop_id: uuid.UUID,
    ) -> BalanceHistory:
        """
        Move a balance by ``delta`` as part of the caller's unit of work.

        Used by the posting path; does not commit on its own.
        """
        account = await self.get_account(kind, account_id, shop_id)
        if not account.is_active:
            raise ForbiddenOperationException(f"{kind.value} account '{account.id}' is inactive")
        new_balance = Decimal(str(account.current_balance or 0)) + Decimal(str(delta))
        return self._record(account, new_balance, reason, user_id)

    # =========================================================================
    # HISTORY
    # =========================================================================

    def _history_query(self, shop_id: uuid.UUID, filters: BalanceHistoryFilter):
        conditions = [BalanceHistory.shop_id == shop_id]
        if filters.account_kind is not None:
            conditions.append(BalanceHistory.account_kind == filters.account_kind)
        if filters.start_date is not None:
            conditions.append(BalanceHistory.created_at >= filters.start_date)
        if filters.end_date is not None:
            conditions.append(BalanceHistory.created_at <= filters.end_date)
        limit = min(filters.limit, settings.max_page_size)
        return (
            select(BalanceHistory)
            .where(and_(*conditions))
            .order_by(BalanceHistory.created_at.desc(), BalanceHistory.id)
            .offset(filters.offset)
            .limit(limit)
        )

    async def get_account_history(
        self,
        kind: PaymentAccountKind,
        account_id: uuid.UUID,
        shop_id: uuid.UUID,
        filters: Optional[BalanceHistoryFilter] = None,
    ) -> List[BalanceHistory]:
        filters = filters or BalanceHistoryFilter()
        filters.account_kind = kind
        query = self._history_query(shop_id, filters).where(BalanceHistory.account_id == account_id)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get_shop_history(
        self,
        shop_id: uuid.UUID,
        filters: Optional[BalanceHistoryFilter] = None,
    ) -> List[BalanceHistory]:
        result = await self.db.execute(self._history_query(shop_id, filters or BalanceHistoryFilter()))
        return list(result.scalars().all())

    async def get_latest_history(
        self,
        kind: PaymentAccountKind,
        account_id: uuid.UUID,
        shop_id: uuid.UUID,
    ) -> Optional[BalanceHistory]:
        entries = await self.get_account_history(
            kind, account_id, shop_id, BalanceHistoryFilter(limit=1)
        )
        return entries[0] if entries else None

"""
ShopLedger - Ledger Transaction Service

Records double-entry postings against the chart of accounts.

A posting, the balance movements of its two accounts and the optional
cash/bank settlement are written in one unit of work. Account balances
follow the normal side of their type: ASSET and EXPENSE grow on debit,
LIABILITY, EQUITY and REVENUE grow on credit.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database import atomic
from app.models.account import Account, AccountType
from app.models.cash_bank import PaymentAccountKind
from app.models.transaction import Transaction, TransactionType
from app.services.balance_ledger_service import BalanceLedgerService
from app.services.chart_of_accounts_service import ChartOfAccountsService
from app.services.financial_year_service import FinancialYearService
from app.utils.clock import Clock, day_bounds, utc_now
from app.utils.error_handling import (
    ClosedPeriodException,
    ForbiddenOperationException,
    InvalidAmountException,
    InvalidOperationException,
    NotFoundException,
)

logger = logging.getLogger(__name__)


@dataclass
class PostingRequest:
    transaction_type: TransactionType
    amount: Decimal
    debit_account_id: uuid.UUID
    credit_account_id: uuid.UUID
    financial_year_id: Optional[uuid.UUID] = None
    transaction_date: Optional[datetime] = None
    amount_paid: Optional[Decimal] = None
    change: Optional[Decimal] = None
    description: Optional[str] = None
    notes: Optional[str] = None
    credit_user_id: Optional[uuid.UUID] = None
    payment_account_kind: Optional[PaymentAccountKind] = None
    payment_account_id: Optional[uuid.UUID] = None


@dataclass
class TransactionFilter:
    """Optional filters for posting listing; unset fields do not filter."""
    transaction_type: Optional[TransactionType] = None
    account_id: Optional[uuid.UUID] = None
    financial_year_id: Optional[uuid.UUID] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    offset: int = 0
    limit: int = settings.default_page_size


def balance_delta(account_type: AccountType, amount: Decimal, debit: bool) -> Decimal:
    """Signed change of an account balance when ``amount`` is posted to one side."""
    return amount if debit == account_type.increases_on_debit else -amount


class LedgerTransactionService:
    """Service for recording and querying ledger postings."""

    def __init__(self, db: AsyncSession, clock: Clock = utc_now):
        self.db = db
        self.clock = clock
        self.accounts = ChartOfAccountsService(db)
        self.years = FinancialYearService(db, clock=clock)
        self.balances = BalanceLedgerService(db)

    # =========================================================================
    # VALIDATION
    # =========================================================================

    async def _posting_account(self, account_id: uuid.UUID, shop_id: uuid.UUID, side: str) -> Account:
        try:
            account = await self.accounts.get_account(account_id, shop_id)
        except NotFoundException:
            raise NotFoundException("Account", account_id, message=f"{side.title()} account '{account_id}' not found")
        if not account.is_active:
            raise ForbiddenOperationException(
                f"{side.title()} account '{account.code}' is inactive",
                details={"account_id": str(account.id)},
            )
        return account

    @staticmethod
    def _validate_amounts(request: PostingRequest) -> Decimal:
        amount = Decimal(str(request.amount))
        if amount <= 0:
            raise InvalidAmountException(request.amount)
        if request.amount_paid is not None:
            paid = Decimal(str(request.amount_paid))
            if paid < 0 or paid > amount:
                raise InvalidAmountException(
                    request.amount_paid,
                    field="amount_paid",
                    message="Amount paid must be between 0 and the transaction amount",
                )
        if request.change is not None and Decimal(str(request.change)) < 0:
            raise InvalidAmountException(request.change, field="change", message="Change cannot be negative")
        return amount

    # =========================================================================
    # RECORDING
    # =========================================================================

    async def record_transaction(
        self,
        shop_id: uuid.UUID,
        user_id: uuid.UUID,
        request: PostingRequest,
    ) -> Transaction:
        """
        Validate and record a posting.

        The financial year defaults to the shop's current year. When a
        cash/bank account is given, its balance moves in the direction of the
        ASSET side of the posting and a history row is written.
        """
        amount = self._validate_amounts(request)
        if request.debit_account_id == request.credit_account_id:
            raise InvalidOperationException(
                "Debit and credit accounts must be different", field="credit_account_id"
            )

        debit = await self._posting_account(request.debit_account_id, shop_id, "debit")
        credit = await self._posting_account(request.credit_account_id, shop_id, "credit")

        if request.financial_year_id is not None:
            year = await self.years.validate_transaction_year(request.financial_year_id, shop_id)
        else:
            year = await self.years.get_current_for_shop(shop_id)
            if year is None:
                raise NotFoundException("FinancialYear", message="Shop has no current financial year")
            year = await self.years.validate_transaction_year(year.id, shop_id)

        settlement_delta = None
        if request.payment_account_id is not None:
            if request.payment_account_kind is None:
                raise InvalidOperationException(
                    "payment_account_kind is required with payment_account_id", field="payment_account_kind"
                )
            if debit.account_type == AccountType.ASSET:
                settlement_delta = amount
            elif credit.account_type == AccountType.ASSET:
                settlement_delta = -amount
            else:
                raise InvalidOperationException(
                    "A cash/bank settlement needs an ASSET account on one side of the posting",
                    field="payment_account_id",
                )

        posting = Transaction(
            id=uuid.uuid4(),
            shop_id=shop_id,
            transaction_type=request.transaction_type,
            amount=amount,
            amount_paid=request.amount_paid,
            change=request.change,
            description=request.description,
            notes=request.notes,
            debit_account_id=debit.id,
            credit_account_id=credit.id,
            debit_user_id=user_id,
            credit_user_id=request.credit_user_id or user_id,
            financial_year_id=year.id,
            transaction_date=request.transaction_date or self.clock(),
            payment_account_kind=request.payment_account_kind if settlement_delta is not None else None,
            payment_account_id=request.payment_account_id if settlement_delta is not None else None,
        )

        async with atomic(self.db):
            self.db.add(posting)
            debit.balance = Decimal(str(debit.balance or 0)) + balance_delta(debit.account_type, amount, True)
            credit.balance = Decimal(str(credit.balance or 0)) + balance_delta(credit.account_type, amount, False)
            if settlement_delta is not None:
                await self.balances.apply_movement(
                    request.payment_account_kind,
                    request.payment_account_id,
                    settlement_delta,
                    f"{request.transaction_type.value} transaction {posting.id}",
                    user_id,
                    shop_id,
                )

        await self.db.refresh(posting)
        logger.info(
            f"Recorded {posting.transaction_type.value} {posting.amount} "
            f"Dr {debit.code} / Cr {credit.code} in shop {shop_id}"
        )
        return posting

    # =========================================================================
    # QUERIES
    # =========================================================================

    async def get_transaction(self, transaction_id: uuid.UUID, shop_id: uuid.UUID) -> Transaction:
        result = await self.db.execute(
            select(Transaction).where(and_(Transaction.id == transaction_id, Transaction.shop_id == shop_id))
        )
        posting = result.scalar_one_or_none()
        if not posting:
            raise NotFoundException("Transaction", transaction_id)
        return posting

    async def list_transactions(
        self,
        shop_id: uuid.UUID,
        filters: Optional[TransactionFilter] = None,
    ) -> List[Transaction]:
        filters = filters or TransactionFilter()
        conditions = [Transaction.shop_id == shop_id]
        if filters.transaction_type is not None:
            conditions.append(Transaction.transaction_type == filters.transaction_type)
        if filters.account_id is not None:
            conditions.append(or_(
                Transaction.debit_account_id == filters.account_id,
                Transaction.credit_account_id == filters.account_id,
            ))
        if filters.financial_year_id is not None:
            conditions.append(Transaction.financial_year_id == filters.financial_year_id)
        if filters.start_date is not None:
            conditions.append(Transaction.transaction_date >= filters.start_date)
        if filters.end_date is not None:
            conditions.append(Transaction.transaction_date < filters.end_date)

        result = await self.db.execute(
            select(Transaction)
            .where(and_(*conditions))
            .order_by(Transaction.transaction_date.desc(), Transaction.created_at.desc())
            .offset(filters.offset)
            .limit(min(filters.limit, settings.max_page_size))
        )
        return list(result.scalars().all())

    async def get_daily_transactions(self, shop_id: uuid.UUID, day: date) -> List[Transaction]:
        start, end = day_bounds(day)
        return await self.list_transactions(
            shop_id,
            TransactionFilter(start_date=start, end_date=end, limit=settings.max_page_size),
        )

    # =========================================================================
    # DELETION
    # =========================================================================

    async def delete_transaction(
        self,
        transaction_id: uuid.UUID,
        shop_id: uuid.UUID,
        user_id: Optional[uuid.UUID] = None,
    ) -> None:
        """Delete a posting of an open year and reverse its balance movements."""
        posting = await self.get_transaction(transaction_id, shop_id)
        year = await self.years.get_by_id(posting.financial_year_id, shop_id)
        if year.is_closed:
            raise ClosedPeriodException(year.id, "delete transactions")

        debit = await self.accounts.get_account(posting.debit_account_id, shop_id)
        credit = await self.accounts.get_account(posting.credit_account_id, shop_id)
        amount = Decimal(str(posting.amount))

        async with atomic(self.db):
            debit.balance = Decimal(str(debit.balance or 0)) - balance_delta(debit.account_type, amount, True)
            credit.balance = Decimal(str(credit.balance or 0)) - balance_delta(credit.account_type, amount, False)
            if posting.payment_account_id is not None:
                delta = -amount if debit.account_type == AccountType.ASSET else amount
                await self.balances.apply_movement(
                    posting.payment_account_kind,
                    posting.payment_account_id,
                    delta,
                    f"Reversal of transaction {posting.id}",
                    user_id or posting.debit_user_id,
                    shop_id,
                )
            await self.db.delete(posting)
        logger.info(f"Deleted transaction {transaction_id} from shop {shop_id}")

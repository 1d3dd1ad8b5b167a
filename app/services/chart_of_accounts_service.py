"""
ShopLedger - Chart of Accounts Service

Account CRUD on top of the shared hierarchy rules, default account
provisioning per shop, customer accounts and hierarchy consistency checks.
"""

import logging
import re
import uuid
from dataclasses import dataclass
from typing import Dict, List, Optional

from sqlalchemy import and_, delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import atomic
from app.models.account import Account, AccountType
from app.models.expense_category import CategoryAccountAssignment
from app.models.transaction import Transaction
from app.services.hierarchy_service import HierarchyService, Tree
from app.utils.error_handling import (
    ConflictException,
    DuplicateEntryException,
    HasChildrenException,
    HasDependentPostingsException,
    InvalidOperationException,
    NotFoundException,
    SystemRecordException,
)

logger = logging.getLogger(__name__)


# ===========================================
# DEFAULT ACCOUNTS
# ===========================================

@dataclass(frozen=True)
class AccountTemplate:
    base_code: str
    name_local: str
    name_global: str
    account_type: AccountType
    parent_code: Optional[str] = None


ROOT_ACCOUNT_TEMPLATES: List[AccountTemplate] = [
    AccountTemplate("REV", "الإيرادات", "Revenue", AccountType.REVENUE),
    AccountTemplate("EXP", "المصروفات", "Expenses", AccountType.EXPENSE),
    AccountTemplate("ASSET", "الأصول", "Assets", AccountType.ASSET),
    AccountTemplate("LIAB", "الخصوم", "Liabilities", AccountType.LIABILITY),
    AccountTemplate("EQUITY", "حقوق الملكية", "Equity", AccountType.EQUITY),
]

CHILD_ACCOUNT_TEMPLATES: List[AccountTemplate] = [
    AccountTemplate("REV-DSALES", "المبيعات المباشرة", "Direct Sales", AccountType.REVENUE, "REV"),
    AccountTemplate("EXP-DPURCH", "المشتريات المباشرة", "Direct Purchases", AccountType.EXPENSE, "EXP"),
    AccountTemplate("ASSET-CASH", "النقد", "Cash", AccountType.ASSET, "ASSET"),
    AccountTemplate("LIAB-AP", "الذمم الدائنة", "Accounts Payable", AccountType.LIABILITY, "LIAB"),
]

DEFAULT_CUSTOMER = AccountTemplate("DS-001", "مبيعات مباشرة", "Direct Sales", AccountType.LIABILITY)

CUSTOMER_CODE_PREFIX = "CUST-"
_CUSTOMER_CODE_RE = re.compile(r"^CUST-(\d+)$")


def shop_code_suffixed(value: str, shop_code: str) -> str:
    return f"{value}-{shop_code}"


@dataclass
class SystemAccounts:
    direct_sales_id: Optional[uuid.UUID]
    direct_purchases_id: Optional[uuid.UUID]
    cash_id: Optional[uuid.UUID]


@dataclass
class AccountFilter:
    """Optional filters for account listing; unset fields do not filter."""
    account_type: Optional[AccountType] = None
    level: Optional[int] = None
    parent_id: Optional[uuid.UUID] = None
    is_active: Optional[bool] = None
    is_system_account: Optional[bool] = None
    search: Optional[str] = None


_UNSET = object()


class ChartOfAccountsService:
    """Service for chart of accounts operations."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.tree = HierarchyService(db, Account)

    # =========================================================================
    # LOOKUPS
    # =========================================================================

    async def get_account(
        self,
        account_id: uuid.UUID,
        shop_id: uuid.UUID,
        active_only: bool = False,
    ) -> Account:
        """Get an account of the shop or raise NotFound."""
        query = select(Account).where(and_(Account.id == account_id, Account.shop_id == shop_id))
        if active_only:
            query = query.where(Account.is_active == True)
        result = await self.db.execute(query)
        account = result.scalar_one_or_none()
        if not account:
            raise NotFoundException("Account", account_id)
        return account

    async def get_by_code(self, code: str, shop_id: uuid.UUID) -> Optional[Account]:
        result = await self.db.execute(
            select(Account).where(and_(Account.code == code, Account.shop_id == shop_id))
        )
        return result.scalar_one_or_none()

    async def list_accounts(
        self,
        shop_id: uuid.UUID,
        filters: Optional[AccountFilter] = None,
    ) -> List[Account]:
        filters = filters or AccountFilter()
        conditions = [Account.shop_id == shop_id]
        if filters.account_type is not None:
            conditions.append(Account.account_type == filters.account_type)
        if filters.level is not None:
            conditions.append(Account.level == filters.level)
        if filters.parent_id is not None:
            conditions.append(Account.parent_id == filters.parent_id)
        if filters.is_active is not None:
            conditions.append(Account.is_active == filters.is_active)
        if filters.is_system_account is not None:
            conditions.append(Account.is_system_account == filters.is_system_account)
        if filters.search:
            pattern = f"%{filters.search.lower()}%"
            conditions.append(or_(
                func.lower(Account.code).like(pattern),
                func.lower(Account.name_local).like(pattern),
                func.lower(Account.name_global).like(pattern),
            ))

        result = await self.db.execute(
            select(Account).where(and_(*conditions)).order_by(Account.account_type, Account.code)
        )
        return list(result.scalars().all())

    async def get_account_tree(self, shop_id: uuid.UUID) -> Tree[Account]:
        tree = await self.tree.build_tree(shop_id)
        if tree.orphans:
            logger.warning(
                f"Shop {shop_id} has {len(tree.orphans)} orphaned account(s): "
                f"{', '.join(a.code for a in tree.orphans)}"
            )
        return tree

    # =========================================================================
    # UNIQUENESS
    # =========================================================================

    async def _ensure_unique(
        self,
        shop_id: uuid.UUID,
        code: Optional[str] = None,
        name_local: Optional[str] = None,
        name_global: Optional[str] = None,
        exclude_id: Optional[uuid.UUID] = None,
    ) -> None:
        base = [Account.shop_id == shop_id]
        if exclude_id is not None:
            base.append(Account.id != exclude_id)

        if code is not None:
            result = await self.db.execute(select(Account.id).where(and_(*base, Account.code == code)))
            if result.first():
                raise DuplicateEntryException("Account", "code", code)

        if name_local is not None and name_global is not None:
            result = await self.db.execute(
                select(Account.id).where(and_(
                    *base,
                    Account.name_local == name_local,
                    Account.name_global == name_global,
                ))
            )
            if result.first():
                raise DuplicateEntryException("Account", "name", f"{name_local} / {name_global}")

    # =========================================================================
    # CRUD
    # =========================================================================

    async def create_account(
        self,
        shop_id: uuid.UUID,
        code: str,
        name_local: str,
        name_global: str,
        account_type: AccountType,
        parent_id: Optional[uuid.UUID] = None,
        is_system_account: bool = False,
    ) -> Account:
        """Create an account; level follows from the parent."""
        await self._ensure_unique(shop_id, code=code, name_local=name_local, name_global=name_global)
        level = await self.tree.level_for_parent(parent_id, shop_id)

        if parent_id is not None:
            parent = await self.get_account(parent_id, shop_id)
            if parent.account_type != account_type:
                raise InvalidOperationException(
                    f"Account type {account_type.value} does not match parent type {parent.account_type.value}",
                    field="account_type",
                )

        account = Account(
            shop_id=shop_id,
            code=code,
            name_local=name_local,
            name_global=name_global,
            account_type=account_type,
            level=level,
            parent_id=parent_id,
            is_system_account=is_system_account,
        )
        async with atomic(self.db):
            self.db.add(account)
        await self.db.refresh(account)
        return account

    async def update_account(
        self,
        account_id: uuid.UUID,
        shop_id: uuid.UUID,
        name_local: Optional[str] = None,
        name_global: Optional[str] = None,
        is_active: Optional[bool] = None,
        parent_id=_UNSET,
    ) -> Account:
        """
        Update names, status or parent. Code and type are immutable.

        ``parent_id=None`` moves the account to the root; leave it unset to
        keep the current parent.
        """
        account = await self.get_account(account_id, shop_id)

        if name_local is not None or name_global is not None:
            new_local = name_local if name_local is not None else account.name_local
            new_global = name_global if name_global is not None else account.name_global
            if (new_local, new_global) != (account.name_local, account.name_global):
                await self._ensure_unique(
                    shop_id, name_local=new_local, name_global=new_global, exclude_id=account.id
                )
            account.name_local = new_local
            account.name_global = new_global

        async with atomic(self.db):
            if parent_id is not _UNSET and parent_id != account.parent_id:
                if parent_id is not None:
                    parent = await self.get_account(parent_id, shop_id)
                    if parent.account_type != account.account_type:
                        raise InvalidOperationException(
                            "An account can only be moved under a parent of the same type",
                            field="parent_id",
                        )
                await self.tree.move(account, parent_id)
            if is_active is not None:
                account.is_active = is_active

        await self.db.refresh(account)
        logger.info(f"Updated account {account.code} in shop {shop_id}")
        return account

    async def deactivate_account(self, account_id: uuid.UUID, shop_id: uuid.UUID) -> Account:
        return await self.update_account(account_id, shop_id, is_active=False)

    async def count_postings(self, account_id: uuid.UUID) -> int:
        result = await self.db.execute(
            select(func.count(Transaction.id)).where(
                or_(Transaction.debit_account_id == account_id, Transaction.credit_account_id == account_id)
            )
        )
        return result.scalar() or 0

    async def delete_account(self, account_id: uuid.UUID, shop_id: uuid.UUID) -> None:
        """Hard-delete an account that has no children and no postings."""
        account = await self.get_account(account_id, shop_id)
        if account.is_system_account:
            raise SystemRecordException("Account", account.code, "delete")
        if await self.tree.has_children(account.id, shop_id):
            raise HasChildrenException("Account", account.code)
        postings = await self.count_postings(account.id)
        if postings:
            raise HasDependentPostingsException("Account", account.code, postings)

        async with atomic(self.db):
            await self.db.execute(
                delete(CategoryAccountAssignment).where(CategoryAccountAssignment.account_id == account.id)
            )
            await self.db.delete(account)
        logger.info(f"Deleted account {account.code} from shop {shop_id}")

    # =========================================================================
    # DEFAULT ACCOUNTS
    # =========================================================================

    async def provision_defaults(self, shop_id: uuid.UUID, shop_code: str) -> List[Account]:
        """
        Install the default account set for a shop.

        Roots are created first, then each child under the root of its type,
        all in one unit of work. A shop whose default set already exists is
        left untouched and its existing accounts are returned.
        """
        existing = await self._default_accounts(shop_id, shop_code)
        expected = len(ROOT_ACCOUNT_TEMPLATES) + len(CHILD_ACCOUNT_TEMPLATES)
        if len(existing) == expected:
            return list(existing.values())

        created: List[Account] = []
        async with atomic(self.db):
            roots: Dict[AccountType, Account] = {}
            for template in ROOT_ACCOUNT_TEMPLATES:
                code = shop_code_suffixed(template.base_code, shop_code)
                account = existing.get(code)
                if account is None:
                    account = self._from_template(template, shop_id, shop_code, level=1, parent_id=None)
                    self.db.add(account)
                    created.append(account)
                roots[template.account_type] = account
            await self.db.flush()

            for template in CHILD_ACCOUNT_TEMPLATES:
                code = shop_code_suffixed(template.base_code, shop_code)
                if code in existing:
                    continue
                parent = roots[template.account_type]
                account = self._from_template(
                    template, shop_id, shop_code, level=parent.level + 1, parent_id=parent.id
                )
                self.db.add(account)
                created.append(account)

        logger.info(f"Provisioned {len(created)} default account(s) for shop {shop_code}")
        return list((await self._default_accounts(shop_id, shop_code)).values())

    def _from_template(
        self,
        template: AccountTemplate,
        shop_id: uuid.UUID,
        shop_code: str,
        level: int,
        parent_id: Optional[uuid.UUID],
    ) -> Account:
        return Account(
            id=uuid.uuid4(),
            shop_id=shop_id,
            code=shop_code_suffixed(template.base_code, shop_code),
            name_local=shop_code_suffixed(template.name_local, shop_code),
            name_global=shop_code_suffixed(template.name_global, shop_code),
            account_type=template.account_type,
            level=level,
            parent_id=parent_id,
            is_system_account=True,
        )

    async def _default_accounts(self, shop_id: uuid.UUID, shop_code: str) -> Dict[str, Account]:
        codes = [
            shop_code_suffixed(t.base_code, shop_code)
            for t in ROOT_ACCOUNT_TEMPLATES + CHILD_ACCOUNT_TEMPLATES
        ]
        result = await self.db.execute(
            select(Account).where(and_(Account.shop_id == shop_id, Account.code.in_(codes)))
        )
        return {a.code: a for a in result.scalars().all()}

    async def get_system_accounts(self, shop_id: uuid.UUID, shop_code: str) -> SystemAccounts:
        """Ids of the direct sales, direct purchases and cash accounts."""
        accounts = await self._default_accounts(shop_id, shop_code)

        def _id(base_code: str) -> Optional[uuid.UUID]:
            account = accounts.get(shop_code_suffixed(base_code, shop_code))
            return account.id if account else None

        return SystemAccounts(
            direct_sales_id=_id("REV-DSALES"),
            direct_purchases_id=_id("EXP-DPURCH"),
            cash_id=_id("ASSET-CASH"),
        )

    async def validate_hierarchy_consistency(self, shop_id: uuid.UUID) -> bool:
        """Every non-root account has a parent one level up with the same type."""
        accounts = {a.id: a for a in await self.tree.load_all(shop_id)}
        consistent = True
        for account in accounts.values():
            if account.level == 1:
                if account.parent_id is not None:
                    logger.warning(f"Root account {account.code} has a parent")
                    consistent = False
                continue
            parent = accounts.get(account.parent_id)
            if parent is None:
                logger.warning(f"Account {account.code} has a missing parent")
                consistent = False
            elif parent.level != account.level - 1 or parent.account_type != account.account_type:
                logger.warning(
                    f"Account {account.code} (level {account.level}, {account.account_type.value}) "
                    f"does not match parent {parent.code} (level {parent.level}, {parent.account_type.value})"
                )
                consistent = False
        return consistent

    # =========================================================================
    # CUSTOMERS & PAYMENT ACCOUNTS
    # =========================================================================

    async def list_customers(self, shop_id: uuid.UUID, search: Optional[str] = None) -> List[Account]:
        """Active LIABILITY accounts, optionally matching ``search`` on name or code."""
        result = await self.list_accounts(
            shop_id,
            AccountFilter(account_type=AccountType.LIABILITY, is_active=True, search=search),
        )
        return sorted(result, key=lambda a: a.code)

    async def next_customer_code(self, shop_id: uuid.UUID) -> str:
        result = await self.db.execute(
            select(Account.code).where(and_(
                Account.shop_id == shop_id,
                Account.code.like(f"{CUSTOMER_CODE_PREFIX}%"),
            ))
        )
        numbers = [
            int(match.group(1))
            for match in (_CUSTOMER_CODE_RE.match(code) for code in result.scalars().all())
            if match
        ]
        return f"{CUSTOMER_CODE_PREFIX}{(max(numbers) + 1) if numbers else 1:03d}"

    async def create_customer(
        self,
        shop_id: uuid.UUID,
        name_local: str,
        name_global: str,
        code: Optional[str] = None,
        parent_id: Optional[uuid.UUID] = None,
    ) -> Account:
        """Create a customer (LIABILITY) account; the code is generated when omitted."""
        return await self.create_account(
            shop_id=shop_id,
            code=code or await self.next_customer_code(shop_id),
            name_local=name_local,
            name_global=name_global,
            account_type=AccountType.LIABILITY,
            parent_id=parent_id,
        )

    async def ensure_default_customer(self, shop_id: uuid.UUID, shop_code: str) -> Account:
        """Create the direct-sales customer account if the shop does not have it yet."""
        existing = await self.get_by_code(DEFAULT_CUSTOMER.base_code, shop_id)
        if existing:
            return existing

        parent = await self.get_by_code(shop_code_suffixed("LIAB", shop_code), shop_id)
        if parent is None:
            raise ConflictException(
                "Default accounts must be provisioned before the default customer",
                resource_type="Account",
            )
        customer = await self.create_account(
            shop_id=shop_id,
            code=DEFAULT_CUSTOMER.base_code,
            name_local=DEFAULT_CUSTOMER.name_local,
            name_global=DEFAULT_CUSTOMER.name_global,
            account_type=DEFAULT_CUSTOMER.account_type,
            parent_id=parent.id,
            is_system_account=True,
        )
        logger.info(f"Created default customer account for shop {shop_code}")
        return customer

    async def get_cash_bank_accounts(self, shop_id: uuid.UUID) -> List[Account]:
        """Active ASSET accounts whose name mentions cash or bank."""
        conditions = [
            func.lower(column).like(f"%{word}%")
            for column in (Account.name_global, Account.name_local)
            for word in ("cash", "bank")
        ]
        result = await self.db.execute(
            select(Account).where(and_(
                Account.shop_id == shop_id,
                Account.account_type == AccountType.ASSET,
                Account.is_active == True,
                or_(*conditions),
            )).order_by(Account.code)
        )
        return list(result.scalars().all())

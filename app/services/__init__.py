"""
ShopLedger - Services Package

Business logic services.
"""

from app.services.hierarchy_service import HierarchyService, Tree, TreeNode, assemble_tree
from app.services.chart_of_accounts_service import ChartOfAccountsService, SystemAccounts
from app.services.expense_category_service import ExpenseCategoryService, BulkImportResult
from app.services.category_assignment_service import CategoryAssignmentService
from app.services.category_usage_service import CategoryUsageService
from app.services.balance_ledger_service import BalanceLedgerService
from app.services.profit_calculation_service import ProfitCalculationService
from app.services.financial_year_service import FinancialYearService
from app.services.ledger_transaction_service import LedgerTransactionService, PostingRequest
from app.services.shop_service import ShopService, ProvisioningResult

__all__ = [
    # Trees
    "HierarchyService",
    "Tree",
    "TreeNode",
    "assemble_tree",
    # Chart of accounts and categories
    "ChartOfAccountsService",
    "SystemAccounts",
    "ExpenseCategoryService",
    "BulkImportResult",
    "CategoryAssignmentService",
    "CategoryUsageService",
    # Ledger
    "BalanceLedgerService",
    "LedgerTransactionService",
    "PostingRequest",
    # Periods and reporting
    "FinancialYearService",
    "ProfitCalculationService",
    # Tenants
    "ShopService",
    "ProvisioningResult",
]

"""SQLAlchemy ORM models."""

from .budget import BUDGET_ROW_ID, Budget
from .category import Category, CategoryRule
from .plaid_account import PlaidAccount
from .plaid_item import PlaidItem
from .snapshot import DailyHolding, DailySnapshot, MonthlySnapshot, YearlySnapshot
from .snaptrade import SnapTradeConnection, SnapTradeUser
from .transaction import Transaction
from .transaction_summary import TransactionMonthlySummary
from .utils import generate_uuid, utcnow

__all__ = ["BUDGET_ROW_ID", "Budget", "Category", "CategoryRule", "DailyHolding", "DailySnapshot", "MonthlySnapshot", "PlaidAccount", "PlaidItem", "SnapTradeConnection", "SnapTradeUser", "Transaction", "TransactionMonthlySummary", "YearlySnapshot", "generate_uuid", "utcnow"]

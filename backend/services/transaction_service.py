"""Transaction read service - listing, monthly summary and budget."""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Iterable, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session, joinedload

from models import BUDGET_ROW_ID, Budget, Category, Transaction, TransactionMonthlySummary
from services.categorization_service import UNCATEGORIZED
from utils.dates import add_months

logger = logging.getLogger(__name__)

TRANSFER_CATEGORY = "Transfer"
INVESTMENTS_CATEGORY = "Investments"


@dataclass
class MonthSummary:
    """Cash flow for one month in cents. Amounts use the provider sign:
    negative is money coming in."""

    month: date
    income_cents: int = 0
    expenses_cents: int = 0
    invested_cents: int = 0
    from_rollup: bool = False


@dataclass
class BudgetView:
    month: date
    allocations: dict[str, int] = field(default_factory=dict)
    spent: dict[str, int] = field(default_factory=dict)


class TransactionService:
    """Queries over stored transactions.

    Months whose transactions were already rolled up by retention are
    answered from TransactionMonthlySummary rows instead.
    """

    @staticmethod
    def list_transactions(
        db: Session,
        month: Optional[date] = None,
        category_id: Optional[int] = None,
        search: Optional[str] = None,
    ) -> list[Transaction]:
        query = db.query(Transaction).options(joinedload(Transaction.category))
        if month is not None:
            query = query.filter(Transaction.date >= month, Transaction.date < add_months(month, 1))
        if category_id is not None:
            query = query.filter(Transaction.category_id == category_id)
        if search:
            pattern = f"%{search.strip()}%"
            query = query.filter(
                or_(Transaction.name.ilike(pattern), Transaction.merchant_name.ilike(pattern))
            )
        return query.order_by(Transaction.date.desc(), Transaction.plaid_transaction_id).all()

    def _month_amounts(self, db: Session, month: date) -> tuple[list[tuple[Optional[int], int]], bool]:
        """(category_id, amount_cents) pairs for a month and whether they
        come from the rollup table."""
        rows = (
            db.query(Transaction.category_id, Transaction.amount_cents)
            .filter(Transaction.date >= month, Transaction.date < add_months(month, 1))
            .all()
        )
        if rows:
            return [(c, a) for c, a in rows], False

        summaries = (
            db.query(
                TransactionMonthlySummary.category_id,
                TransactionMonthlySummary.inflow_cents,
                TransactionMonthlySummary.outflow_cents,
            )
            .filter(TransactionMonthlySummary.month == month)
            .all()
        )
        # one outflow and one inflow pair per category keeps the sign split
        amounts: list[tuple[Optional[int], int]] = []
        for category_id, inflow, outflow in summaries:
            if outflow:
                amounts.append((category_id, outflow))
            if inflow:
                amounts.append((category_id, -inflow))
        return amounts, bool(summaries)

    def get_summary(self, db: Session, month: date) -> MonthSummary:
        """Income, expenses and invested totals for a month.

        Transfers are excluded. Inflows count as income; outflows count as
        invested for the Investments category, as expenses for expense
        categories and for uncategorized rows, and not at all otherwise.
        """
        categories = db.query(Category).all()
        by_name = {c.name: c.id for c in categories}
        expense_ids = {c.id for c in categories if c.expense}
        transfer_id = by_name.get(TRANSFER_CATEGORY)
        investments_id = by_name.get(INVESTMENTS_CATEGORY)

        amounts, from_rollup = self._month_amounts(db, month)
        summary = MonthSummary(month=month, from_rollup=from_rollup)
        for category_id, amount in amounts:
            if category_id is not None and category_id == transfer_id:
                continue
            if amount < 0:
                summary.income_cents += -amount
            elif category_id is None:
                summary.expenses_cents += amount
            elif category_id == investments_id:
                summary.invested_cents += amount
            elif category_id in expense_ids:
                summary.expenses_cents += amount
        return summary

    def spent_by_category(self, db: Session, month: date) -> dict[str, int]:
        """Net outflow per expense category name for a month."""
        categories = {c.id: c for c in db.query(Category).all()}
        amounts, _ = self._month_amounts(db, month)
        return _sum_expenses(amounts, categories)

    @staticmethod
    def get_allocations(db: Session) -> dict[str, int]:
        budget = db.query(Budget).filter(Budget.id == BUDGET_ROW_ID).first()
        if budget is None or not budget.allocations:
            return {}
        return {name: int(cents) for name, cents in budget.allocations.items()}

    def get_budget(self, db: Session, month: date) -> BudgetView:
        return BudgetView(
            month=month,
            allocations=self.get_allocations(db),
            spent=self.spent_by_category(db, month),
        )

    @staticmethod
    def set_allocations(db: Session, allocations: dict[str, int]) -> dict[str, int]:
        """Replace the budget allocations. Flushes; the caller commits."""
        budget = db.query(Budget).filter(Budget.id == BUDGET_ROW_ID).first()
        if budget is None:
            budget = Budget(id=BUDGET_ROW_ID)
            db.add(budget)
        budget.allocations = dict(allocations)
        db.flush()
        logger.info("Budget updated: %d allocations", len(allocations))
        return budget.allocations

    @staticmethod
    def list_categories(db: Session) -> list[Category]:
        return db.query(Category).order_by(Category.id).all()


def _sum_expenses(amounts: Iterable[tuple[Optional[int], int]], categories: dict[int, Category]) -> dict[str, int]:
    spent: dict[str, int] = {}
    for category_id, amount in amounts:
        if category_id is None:
            spent[UNCATEGORIZED] = spent.get(UNCATEGORIZED, 0) + amount
            continue
        category = categories.get(category_id)
        if category is None or not category.expense:
            continue
        spent[category.name] = spent.get(category.name, 0) + amount
    return spent

"""Transactions, categories and budget API endpoints."""

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from api.cron import get_batch_service
from database import get_db
from schemas.batch import BatchResultResponse
from schemas.transaction import (
    BudgetResponse,
    BudgetUpdateRequest,
    CategoryListResponse,
    CategoryResponse,
    TransactionListResponse,
    TransactionResponse,
    TransactionSummaryResponse,
)
from services.batch_service import BatchService
from services.link_service import LinkService
from services.transaction_service import TransactionService
from utils.dates import parse_month

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["transactions"])
service = TransactionService()


def _month_or_400(month: Optional[str]) -> date:
    if not month:
        raise HTTPException(status_code=400, detail="month required (YYYY-MM)")
    try:
        return parse_month(month)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/transactions", response_model=TransactionListResponse)
def list_transactions(
    month: Optional[str] = Query(None, description="YYYY-MM"),
    category_id: Optional[int] = Query(None),
    search: Optional[str] = Query(None, description="Matches name or merchant"),
    db: Session = Depends(get_db),
):
    """List transactions, newest first."""
    month_start = _month_or_400(month) if month else None
    rows = service.list_transactions(db, month=month_start, category_id=category_id, search=search)
    return TransactionListResponse(
        transactions=[
            TransactionResponse(
                transaction_id=t.plaid_transaction_id,
                item_id=t.item_id,
                account_id=t.plaid_account_id,
                date=t.date,
                amount_cents=t.amount_cents,
                name=t.name,
                merchant_name=t.merchant_name,
                category_id=t.category_id,
                category_name=t.category.name if t.category else None,
                pending=t.pending,
            )
            for t in rows
        ]
    )


@router.get("/transactions/summary", response_model=TransactionSummaryResponse)
def get_transactions_summary(
    month: Optional[str] = Query(None, description="YYYY-MM"),
    db: Session = Depends(get_db),
):
    """Income, expenses and invested totals for a month (transfers excluded)."""
    summary = service.get_summary(db, _month_or_400(month))
    return TransactionSummaryResponse(
        month=f"{summary.month:%Y-%m}",
        income_cents=summary.income_cents,
        expenses_cents=summary.expenses_cents,
        invested_cents=summary.invested_cents,
        from_rollup=summary.from_rollup,
    )


@router.post("/transactions/sync", response_model=BatchResultResponse)
def sync_transactions(
    item_id: Optional[str] = Query(None, description="Sync only this item"),
    db: Session = Depends(get_db),
    batch_service: BatchService = Depends(get_batch_service),
):
    """Sync one item, or every pending item, without the snapshot pass.

    Raises:
        HTTPException:
            - 404 Not Found: ``item_id`` is not linked
            - 409 Conflict: A batch run is already in progress
    """
    item_ids = None
    if item_id is not None:
        if LinkService.get_item(db, item_id) is None:
            raise HTTPException(status_code=404, detail=f"Item not found: {item_id}")
        item_ids = [item_id]

    try:
        return batch_service.run(db, item_ids=item_ids, include_snapshots=False)
    except ValueError as e:
        if "already in progress" in str(e).lower():
            raise HTTPException(status_code=409, detail="Batch run already in progress")
        raise


@router.get("/categories", response_model=CategoryListResponse)
def list_categories(db: Session = Depends(get_db)):
    """List spending categories."""
    return CategoryListResponse(
        categories=[CategoryResponse.model_validate(c) for c in service.list_categories(db)]
    )


@router.get("/budget", response_model=BudgetResponse)
def get_budget(
    month: Optional[str] = Query(None, description="YYYY-MM"),
    db: Session = Depends(get_db),
):
    """Budget allocations and amount spent per expense category for a month."""
    budget = service.get_budget(db, _month_or_400(month))
    return BudgetResponse(month=f"{budget.month:%Y-%m}", allocations=budget.allocations, spent=budget.spent)


@router.put("/budget", response_model=BudgetResponse)
def update_budget(
    body: BudgetUpdateRequest,
    month: Optional[str] = Query(None, description="Month to report spending for (defaults to current)"),
    db: Session = Depends(get_db),
):
    """Replace the budget allocations."""
    month_start = _month_or_400(month) if month else date.today().replace(day=1)
    service.set_allocations(db, body.allocations)
    db.commit()
    budget = service.get_budget(db, month_start)
    return BudgetResponse(month=f"{budget.month:%Y-%m}", allocations=budget.allocations, spent=budget.spent)

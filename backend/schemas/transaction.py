"""Pydantic schemas for transactions, categories and the budget."""

import datetime as dt
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator


class TransactionResponse(BaseModel):
    """A stored transaction. Positive amounts are money leaving the account."""

    transaction_id: str
    item_id: str
    account_id: str
    date: dt.date
    amount_cents: int
    name: str
    merchant_name: Optional[str] = None
    category_id: Optional[int] = None
    category_name: Optional[str] = None
    pending: bool = False


class TransactionListResponse(BaseModel):
    transactions: list[TransactionResponse]


class TransactionSummaryResponse(BaseModel):
    """Monthly cash flow. ``from_rollup`` is set when the month's detail
    rows were already archived and the totals come from the rollup table."""

    month: str
    income_cents: int
    expenses_cents: int
    invested_cents: int
    from_rollup: bool = False


class CategoryResponse(BaseModel):
    id: int
    name: str
    expense: bool

    model_config = ConfigDict(from_attributes=True)


class CategoryListResponse(BaseModel):
    categories: list[CategoryResponse]


class BudgetResponse(BaseModel):
    month: str
    allocations: dict[str, int]
    spent: dict[str, int]


class BudgetUpdateRequest(BaseModel):
    """Replacement allocations, category name to cents."""

    allocations: dict[str, int] = {}

    @field_validator("allocations")
    @classmethod
    def validate_allocations(cls, v: dict[str, int]) -> dict[str, int]:
        for name, cents in v.items():
            if not name.strip():
                raise ValueError("Category name must not be empty")
            if cents < 0:
                raise ValueError(f"Allocation for {name} must not be negative")
        return v

"""Test fixtures and sample data."""
from datetime import date

import pytest
from sqlalchemy.orm import Session

from models import (
    Category,
    DailyHolding,
    DailySnapshot,
    PlaidAccount,
    PlaidItem,
    SnapTradeUser,
    Transaction,
)
from services.categorization_service import CategoryService


def category_id(db: Session, name: str) -> int:
    """Look up a seeded category id by name."""
    return db.query(Category).filter(Category.name == name).one().id


def add_transaction(
    db: Session,
    transaction_id: str,
    amount_cents: int,
    txn_date: date,
    category: str | None = None,
    item_id: str = "item_chase",
    name: str = "Purchase",
    merchant_name: str | None = None,
) -> Transaction:
    """Insert a stored transaction, categorized by category name."""
    txn = Transaction(
        plaid_transaction_id=transaction_id,
        item_id=item_id,
        plaid_account_id="acc_checking",
        date=txn_date,
        amount_cents=amount_cents,
        name=name,
        merchant_name=merchant_name,
        category_id=category_id(db, category) if category else None,
        pending=False,
    )
    db.add(txn)
    db.flush()
    return txn


def add_daily(
    db: Session,
    day: date,
    holdings: list[tuple[str, str, int]],
    total_cents: int | None = None,
) -> None:
    """Insert a DailySnapshot and its DailyHolding rows.

    Args:
        holdings: (account_id, symbol, value_cents) tuples
        total_cents: DailySnapshot value (defaults to the holdings sum)
    """
    for account_id, symbol, value_cents in holdings:
        db.add(DailyHolding(
            holding_date=day,
            account_id=account_id,
            symbol=symbol,
            quantity=1,
            value_cents=value_cents,
        ))
    db.add(DailySnapshot(
        snapshot_date=day,
        portfolio_value_cents=total_cents if total_cents is not None else sum(h[2] for h in holdings),
    ))
    db.flush()


@pytest.fixture
def categories(db: Session) -> dict[str, int]:
    """Seed the default categories and rules; returns name -> id."""
    CategoryService().seed_defaults(db)
    return {c.name: c.id for c in db.query(Category).all()}


@pytest.fixture
def plaid_item(db: Session) -> PlaidItem:
    """A linked bank item with a checking account and a credit card."""
    item = PlaidItem(
        item_id="item_chase",
        access_token="access-sandbox-chase",
        institution_id="ins_3",
        institution_name="Chase",
        status="OK",
        new_transactions_pending=True,
    )
    db.add(item)
    db.flush()
    db.add_all([
        PlaidAccount(
            item_id=item.item_id,
            account_id="acc_checking",
            name="Everyday Checking",
            mask="0000",
            type="depository",
            subtype="checking",
            current_balance_cents=320_050,
        ),
        PlaidAccount(
            item_id=item.item_id,
            account_id="acc_credit",
            name="Rewards Card",
            mask="3333",
            type="credit",
            subtype="credit card",
            current_balance_cents=41_210,
        ),
    ])
    db.commit()
    return item


@pytest.fixture
def snaptrade_user(db: Session) -> SnapTradeUser:
    """The registered brokerage user."""
    user = SnapTradeUser(user_id="owner", user_secret="secret-owner")
    db.add(user)
    db.commit()
    return user

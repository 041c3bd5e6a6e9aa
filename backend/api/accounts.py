"""Accounts API endpoints."""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from api.snaptrade import _get_snaptrade_client
from database import get_db
from integrations.snaptrade_client import SnapTradeClient
from schemas.account import AccountResponse, AccountsResponse
from services.account_service import AccountService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/accounts", tags=["accounts"])


@router.get("", response_model=AccountsResponse)
def list_accounts(
    db: Session = Depends(get_db),
    client: SnapTradeClient = Depends(_get_snaptrade_client),
):
    """List bank and brokerage accounts with the current net worth breakdown.

    Brokerage balances are fetched live; when SnapTrade is unavailable the
    response omits those accounts and sets ``brokerage_unavailable``.
    """
    service = AccountService(brokerage_client=client if client.is_configured() else None)
    net_worth = service.get_net_worth(db)
    return AccountsResponse(
        accounts=[AccountResponse.model_validate(a) for a in net_worth.accounts],
        net_worth_cents=net_worth.net_worth_cents,
        cash_cents=net_worth.cash_cents,
        investments_cents=net_worth.investments_cents,
        liabilities_cents=net_worth.liabilities_cents,
        brokerage_unavailable=net_worth.brokerage_unavailable,
    )

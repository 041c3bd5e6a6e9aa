"""Portfolio API endpoints."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from api.snaptrade import _get_snaptrade_client
from database import get_db
from integrations.exceptions import ProviderError
from integrations.snaptrade_client import SnapTradeClient
from schemas.portfolio import (
    CurrentHoldingsResponse,
    HoldingPointResponse,
    HoldingsHistoryResponse,
    SnapshotHistoryResponse,
    ValuePointResponse,
)
from services.portfolio_service import PortfolioService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/portfolio", tags=["portfolio"])


@router.get("/snapshots", response_model=SnapshotHistoryResponse)
def get_snapshots(
    account_id: Optional[str] = Query(None, description="Limit the series to one brokerage account"),
    db: Session = Depends(get_db),
):
    """Daily values for the last 30 days, monthly values since January two
    years back, and yearly values for rolled-up years."""
    history = PortfolioService().get_snapshot_history(db, account_id=account_id)
    return SnapshotHistoryResponse(
        daily=[ValuePointResponse.model_validate(p) for p in history.daily],
        monthly=[ValuePointResponse.model_validate(p) for p in history.monthly],
        yearly=[ValuePointResponse.model_validate(p) for p in history.yearly],
    )


@router.get("/holdings/history", response_model=HoldingsHistoryResponse)
def get_holdings_history(
    account_id: Optional[str] = Query(None),
    symbol: Optional[str] = Query(None),
    db: Session = Depends(get_db),
):
    """Daily holdings for the last 30 days, filtered by account and/or symbol."""
    points = PortfolioService.get_holdings_history(db, account_id=account_id, symbol=symbol)
    return HoldingsHistoryResponse(daily=[HoldingPointResponse.model_validate(p) for p in points])


@router.get("/holdings", response_model=CurrentHoldingsResponse)
def get_current_holdings(
    db: Session = Depends(get_db),
    client: SnapTradeClient = Depends(_get_snaptrade_client),
):
    """Live positions across every brokerage account."""
    if not client.is_configured():
        raise HTTPException(status_code=400, detail="SnapTrade is not configured")
    try:
        points = PortfolioService(brokerage_client=client).get_current_holdings(db)
    except ProviderError as e:
        logger.warning("Failed to list brokerage accounts: %s", e)
        raise HTTPException(status_code=502, detail="Failed to list brokerage accounts")
    return CurrentHoldingsResponse(holdings=[HoldingPointResponse.model_validate(p) for p in points])

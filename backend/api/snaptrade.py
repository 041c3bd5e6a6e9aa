"""SnapTrade connection API endpoints."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from database import get_db
from integrations.exceptions import ProviderError
from integrations.snaptrade_client import SnapTradeClient
from schemas.link import BrokerageConnectionResponse, ConnectUrlResponse
from services.link_service import LinkService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/snaptrade", tags=["snaptrade"])


def _get_snaptrade_client() -> SnapTradeClient:
    """Dependency for injecting the SnapTrade client (overridable in tests)."""
    return SnapTradeClient()


@router.post("/connect-url", response_model=ConnectUrlResponse)
def create_connect_url(
    db: Session = Depends(get_db),
    client: SnapTradeClient = Depends(_get_snaptrade_client),
):
    """Return a Connection Portal URL, registering the owner on first use."""
    if not client.is_configured():
        raise HTTPException(status_code=400, detail="SnapTrade is not configured")

    service = LinkService(brokerage_client=client)
    try:
        user_existed = service.get_brokerage_user(db) is not None
        service.get_or_register_user(db)
        # Keep the registration even if the portal call below fails
        if not user_existed:
            db.commit()
        redirect_uri = service.connection_portal_url(db)
    except ProviderError as e:
        logger.error("Failed to create SnapTrade connect URL: %s", e)
        raise HTTPException(status_code=502, detail="Failed to create connect URL")
    return ConnectUrlResponse(redirect_uri=redirect_uri)


@router.post("/sync-connections", response_model=list[BrokerageConnectionResponse])
def sync_connections(
    db: Session = Depends(get_db),
    client: SnapTradeClient = Depends(_get_snaptrade_client),
):
    """Pull the brokerage connection list into the database."""
    if not client.is_configured():
        raise HTTPException(status_code=400, detail="SnapTrade is not configured")
    try:
        connections = LinkService(brokerage_client=client).sync_connections(db)
    except ProviderError as e:
        logger.error("Failed to list SnapTrade connections: %s", e)
        raise HTTPException(status_code=502, detail="Failed to list connections")
    db.commit()
    return connections


@router.delete("/connections/{connection_id}")
def remove_connection(
    connection_id: str,
    db: Session = Depends(get_db),
    client: SnapTradeClient = Depends(_get_snaptrade_client),
):
    """Remove a brokerage connection at SnapTrade, then locally."""
    try:
        removed = LinkService(brokerage_client=client).remove_connection(db, connection_id)
    except ProviderError as e:
        logger.warning("Failed to remove SnapTrade connection %s: %s", connection_id, e)
        raise HTTPException(status_code=502, detail="Failed to remove connection at SnapTrade")
    if not removed:
        raise HTTPException(status_code=404, detail=f"Connection not found: {connection_id}")

    db.commit()
    return {"status": "ok", "connection_id": connection_id}

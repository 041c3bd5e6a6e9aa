"""Linked institutions overview endpoint."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from database import get_db
from schemas.link import BrokerageConnectionResponse, LinksResponse, PlaidItemResponse
from services.link_service import LinkService

router = APIRouter(prefix="/api/links", tags=["links"])


@router.get("", response_model=LinksResponse)
def list_links(db: Session = Depends(get_db)):
    """List linked bank items and brokerage connections with their health status."""
    return LinksResponse(
        plaid_items=[PlaidItemResponse.model_validate(i) for i in LinkService.list_items(db)],
        snaptrade_connections=[
            BrokerageConnectionResponse.model_validate(c) for c in LinkService.list_connections(db)
        ],
    )

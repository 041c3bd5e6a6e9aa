"""Plaid Link API endpoints.

Provides the server-side endpoints for the Plaid Link browser-based
authentication flow: creating link tokens (new and update mode),
exchanging public tokens, and removing linked institutions (PlaidItems).
"""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from database import get_db
from integrations.exceptions import ProviderError
from integrations.plaid_client import PlaidClient
from schemas.link import (
    ExchangeTokenRequest,
    ExchangeTokenResponse,
    LinkTokenResponse,
    ReconnectLinkTokenRequest,
)
from services.link_service import LinkService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/plaid", tags=["plaid"])


def _get_plaid_client() -> PlaidClient:
    """Dependency for injecting the Plaid client (overridable in tests)."""
    return PlaidClient()


def _require_configured(client: PlaidClient) -> None:
    if not client.is_configured():
        raise HTTPException(status_code=400, detail="Plaid is not configured")


def _link_token_error(e: ProviderError) -> HTTPException:
    # Surface actionable hint for the most common error
    if getattr(e, "error_code", None) == "INVALID_API_KEYS":
        hint = (
            "Plaid rejected the credentials. Check that PLAID_ENVIRONMENT "
            "matches your keys (sandbox or production). "
            "Each environment has different secrets."
        )
        logger.error("Plaid INVALID_API_KEYS: %s", hint)
        return HTTPException(status_code=400, detail=hint)
    logger.error("Failed to create Plaid link token: %s", e)
    return HTTPException(status_code=502, detail="Failed to create link token")


@router.post("/link-token", response_model=LinkTokenResponse)
def create_link_token(
    client: PlaidClient = Depends(_get_plaid_client),
):
    """Create a Plaid Link token for the frontend."""
    _require_configured(client)
    try:
        return LinkTokenResponse(link_token=LinkService(bank_client=client).create_link_token())
    except ProviderError as e:
        raise _link_token_error(e)


@router.post("/reconnect-link-token", response_model=LinkTokenResponse)
def create_reconnect_link_token(
    body: ReconnectLinkTokenRequest,
    db: Session = Depends(get_db),
    client: PlaidClient = Depends(_get_plaid_client),
):
    """Create an update-mode Link token so the owner can re-authenticate an item."""
    _require_configured(client)
    try:
        link_token = LinkService(bank_client=client).create_reconnect_link_token(db, body.item_id)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ProviderError as e:
        raise _link_token_error(e)
    return LinkTokenResponse(link_token=link_token)


@router.post("/exchange-token", response_model=ExchangeTokenResponse)
def exchange_token(
    body: ExchangeTokenRequest,
    db: Session = Depends(get_db),
    client: PlaidClient = Depends(_get_plaid_client),
):
    """Exchange a Plaid Link public_token and store the resulting Item and its accounts."""
    _require_configured(client)
    try:
        item = LinkService(bank_client=client).exchange_public_token(
            db,
            body.public_token,
            institution_id=body.institution_id,
            institution_name=body.institution_name,
        )
    except ProviderError as e:
        logger.error("Failed to exchange Plaid token: %s", e)
        raise HTTPException(status_code=502, detail="Failed to exchange token")

    db.commit()
    return ExchangeTokenResponse(
        item_id=item.item_id,
        institution_name=item.institution_name,
        accounts_linked=len(item.accounts),
    )


@router.delete("/items/{item_id}")
def remove_item(
    item_id: str,
    db: Session = Depends(get_db),
    client: PlaidClient = Depends(_get_plaid_client),
):
    """Remove a linked Plaid Item (revokes token with Plaid, then deletes locally)."""
    try:
        removed = LinkService(bank_client=client).remove_item(db, item_id)
    except ProviderError as e:
        logger.warning("Failed to remove Plaid item %s: %s", item_id, e)
        raise HTTPException(status_code=502, detail="Failed to remove item at Plaid")
    if not removed:
        raise HTTPException(status_code=404, detail=f"Item not found: {item_id}")

    db.commit()
    return {"status": "ok", "item_id": item_id}

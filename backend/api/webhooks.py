"""Inbound provider webhooks.

The bank webhook only records that new transactions are waiting; the sync
itself runs in the next batch. It never calls the provider.
"""

import json
import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from database import get_db
from services.batch_service import BatchService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/webhooks", tags=["webhooks"])

SYNC_UPDATES_AVAILABLE = "SYNC_UPDATES_AVAILABLE"


@router.post("/plaid")
async def plaid_webhook(request: Request, db: Session = Depends(get_db)):
    """Handle a Plaid webhook.

    Only ``SYNC_UPDATES_AVAILABLE`` has an effect: the item is flagged
    pending. Every other code is acknowledged and ignored.

    Raises:
        HTTPException:
            - 400 Bad Request: Body is not a JSON object, or a sync code
              arrives without ``item_id``
            - 500 Internal Server Error: The pending flag could not be stored
    """
    try:
        payload = json.loads(await request.body())
    except (UnicodeDecodeError, json.JSONDecodeError):
        raise HTTPException(status_code=400, detail="Invalid JSON")
    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="Invalid JSON")

    webhook_code = payload.get("webhook_code")
    if webhook_code != SYNC_UPDATES_AVAILABLE:
        logger.debug("Ignoring webhook %s/%s", payload.get("webhook_type"), webhook_code)
        return {"status": "ignored"}

    item_id = payload.get("item_id")
    if not item_id or not isinstance(item_id, str):
        raise HTTPException(status_code=400, detail="Missing item_id")

    try:
        known = BatchService.mark_item_pending(db, item_id)
    except SQLAlchemyError:
        db.rollback()
        logger.error("Failed to record webhook for item %s", item_id, exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to record webhook")

    if not known:
        logger.warning("Webhook for unknown item %s", item_id)
        return {"status": "unknown_item"}
    logger.info("Item %s marked pending", item_id)
    return {"status": "ok"}

"""Scheduled batch endpoints, called by an external scheduler.

Every endpoint here requires the shared cron secret, sent either in the
``X-Cron-Secret`` header or as the ``secret`` query parameter.
"""

import hmac
import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query
from sqlalchemy.orm import Session

from api.plaid import _get_plaid_client
from api.snaptrade import _get_snaptrade_client
from config import settings
from database import get_db
from integrations.plaid_client import PlaidClient
from integrations.snaptrade_client import SnapTradeClient
from schemas.batch import BatchResultResponse, RetentionResultResponse
from services.batch_service import BatchService
from services.retention_service import RetentionService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/cron", tags=["cron"])


def get_cron_secret() -> str:
    """Dependency returning the configured shared secret (overridable in tests)."""
    return settings.CRON_SECRET


def get_batch_service(
    plaid_client: PlaidClient = Depends(_get_plaid_client),
    snaptrade_client: SnapTradeClient = Depends(_get_snaptrade_client),
) -> BatchService:
    """Dependency building the batch orchestrator (overridable in tests)."""
    return BatchService(
        bank_client=plaid_client,
        brokerage_client=snaptrade_client if snaptrade_client.is_configured() else None,
    )


def get_retention_service() -> RetentionService:
    """Dependency building the retention pass (overridable in tests)."""
    return RetentionService()


def verify_cron_secret(
    x_cron_secret: Optional[str] = Header(None),
    secret: Optional[str] = Query(None),
    expected: str = Depends(get_cron_secret),
) -> None:
    """Reject the request unless it carries the shared secret.

    An unset secret rejects every request.
    """
    provided = x_cron_secret or secret or ""
    if not expected or not hmac.compare_digest(provided.encode(), expected.encode()):
        logger.warning("Rejected cron request with missing or invalid secret")
        raise HTTPException(status_code=401, detail="Invalid cron secret")


@router.post(
    "/daily-sync",
    response_model=BatchResultResponse,
    dependencies=[Depends(verify_cron_secret)],
)
def daily_sync(
    db: Session = Depends(get_db),
    batch_service: BatchService = Depends(get_batch_service),
):
    """Run the nightly batch: pending item syncs, then the brokerage snapshot.

    Per-item provider failures are reported in ``errors`` and do not fail
    the request.

    Raises:
        HTTPException:
            - 401 Unauthorized: Missing or wrong secret
            - 409 Conflict: A batch run is already in progress
            - 500 Internal Server Error: The run aborted (store failure)
    """
    try:
        return batch_service.run(db, today=date.today())
    except ValueError as e:
        # Batch lock contention
        if "already in progress" in str(e).lower():
            raise HTTPException(status_code=409, detail="Batch run already in progress")
        logger.error("Batch run failed", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Batch run failed: {e}")
    except Exception as e:
        logger.error("Batch run failed", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Batch run failed: {e}")


@router.post(
    "/retention",
    response_model=RetentionResultResponse,
    dependencies=[Depends(verify_cron_secret)],
)
def run_retention(
    dry_run: bool = Query(False, description="Only report which months and years are due"),
    db: Session = Depends(get_db),
    retention_service: RetentionService = Depends(get_retention_service),
):
    """Archive and roll up aged snapshot and transaction rows.

    Units that fail to archive or confirm are reported in ``errors`` and
    keep their rows.
    """
    try:
        return retention_service.run(db, today=date.today(), dry_run=dry_run)
    except Exception as e:
        logger.error("Retention run failed", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Retention run failed: {e}")

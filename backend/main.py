"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api import accounts, cron, links, plaid, portfolio, snaptrade, transactions, webhooks
from config import settings
from database import get_session_local
from logging_config import setup_logging
from services.categorization_service import CategoryService

setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Seed default categories, rules and the budget row on startup."""
    SessionLocal = get_session_local()
    db = SessionLocal()
    try:
        CategoryService().seed_defaults(db)
    except Exception:
        logger.warning("Category seeding failed on startup", exc_info=True)
    finally:
        db.close()
    yield


app = FastAPI(
    title="Ledgerline",
    description="Personal bank and brokerage aggregation",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS configuration for frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.CORS_ALLOWED_ORIGIN],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routers
app.include_router(accounts.router)
app.include_router(cron.router)
app.include_router(links.router)
app.include_router(plaid.router)
app.include_router(portfolio.router)
app.include_router(snaptrade.router)
app.include_router(transactions.router)
app.include_router(webhooks.router)


@app.get("/health")
def health_check():
    """Health check endpoint."""
    return {"status": "ok"}

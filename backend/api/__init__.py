"""API route handlers."""
from . import accounts, cron, links, plaid, portfolio, snaptrade, transactions, webhooks

__all__ = ["accounts", "cron", "links", "plaid", "portfolio", "snaptrade", "transactions", "webhooks"]

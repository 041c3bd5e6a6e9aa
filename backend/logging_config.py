"""Centralized logging configuration."""

import logging
import re

from config import settings

# Plaid access and public tokens, e.g. access-sandbox-<uuid>
_PROVIDER_TOKEN = re.compile(r"\b(access|public)-(sandbox|development|production)-[0-9a-fA-F-]+")
# The cron secret may arrive as a query parameter and show up in access logs
_SECRET_PARAM = re.compile(r"([?&]secret=)[^&\s\"]+")

# Loggers that write request lines or SDK payloads straight to their own logger
_REDACTED_LOGGERS = ("uvicorn.access", "plaid", "snaptrade_client")


def redact(message: str) -> str:
    """Mask provider tokens and the cron secret in a log message."""
    message = _PROVIDER_TOKEN.sub(r"\1-\2-***", message)
    return _SECRET_PARAM.sub(r"\1***", message)


class RedactSecretsFilter(logging.Filter):
    """Rewrites a record's message when it carries a token or secret."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = redact(message)
        if redacted != message:
            record.msg = redacted
            record.args = ()
        return True


def setup_logging() -> None:
    """Configure logging for the application.

    Sets root logger level from settings.LOG_LEVEL and suppresses noisy
    third-party loggers to WARNING. Timestamps carry the date, and provider
    tokens and the cron secret are masked before any handler writes them.
    """
    logging.basicConfig(
        format="%(asctime)s %(levelname)-8s %(name)s  %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        level=getattr(logging, settings.LOG_LEVEL),
        force=True,
    )

    redaction = RedactSecretsFilter()
    for handler in logging.getLogger().handlers:
        handler.addFilter(redaction)
    for name in _REDACTED_LOGGERS:
        logger = logging.getLogger(name)
        if not any(isinstance(f, RedactSecretsFilter) for f in logger.filters):
            logger.addFilter(redaction)

    # Suppress noisy third-party loggers
    for name in (
        "sqlalchemy.engine",
        "sqlalchemy.pool",
        "httpx",
        "httpcore",
        "urllib3",
        "plaid",
        "snaptrade_client",
    ):
        logging.getLogger(name).setLevel(logging.WARNING)

"""Shared parsing utilities for provider clients.

Centralises the conversions every integration needs at the SDK boundary:
money to integer cents and provider date values to ``date`` objects.
"""

from datetime import date, datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation


def to_decimal(value) -> Decimal | None:
    """Convert a value to Decimal, returning None on failure."""
    if value is None:
        return None
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None


def to_cents(value) -> int:
    """Convert a currency amount to integer cents, rounding half away from zero.

    ``None`` and unparseable values are treated as zero.
    """
    amount = to_decimal(value)
    if amount is None:
        return 0
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def position_value_cents(price, quantity) -> int:
    """Market value of a position in cents.

    Zero unless both price and quantity are positive.
    """
    p = to_decimal(price)
    q = to_decimal(quantity)
    if p is None or q is None or p <= 0 or q <= 0:
        return 0
    return to_cents(p * q)


def parse_date(value) -> date | None:
    """Parse a provider date (``date``, ``datetime`` or ``YYYY-MM-DD`` string).

    Returns:
        A ``date``, or None if the value cannot be parsed.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except (ValueError, TypeError):
        return None


def get_field(obj, name: str, default=None):
    """Read ``name`` from a dict or an SDK model object.

    SDK responses arrive as plain dicts, dict-like models or attribute
    objects depending on the SDK version; this hides the difference.
    """
    if obj is None:
        return default
    if isinstance(obj, dict) or hasattr(obj, "get"):
        return obj.get(name, default)
    return getattr(obj, name, default)


def parse_iso_datetime(value) -> datetime | None:
    """Parse an ISO 8601 string (or date/datetime object) to a UTC-aware datetime.

    Handles a ``Z`` suffix, ``+0000`` offsets without a colon, and
    date-only strings.

    Returns:
        A timezone-aware UTC datetime, or None if the value cannot be parsed.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)

    value_str = str(value)
    if value_str.endswith("Z"):
        value_str = value_str[:-1] + "+00:00"
    if (
        len(value_str) >= 5
        and value_str[-5] in ("+", "-")
        and value_str[-4:].isdigit()
    ):
        value_str = value_str[:-2] + ":" + value_str[-2:]

    try:
        dt = datetime.fromisoformat(value_str)
    except (ValueError, TypeError):
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt

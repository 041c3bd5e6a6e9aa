"""Calendar helpers for snapshot and retention boundaries."""

from datetime import date, timedelta


def is_last_day_of_month(d: date) -> bool:
    """True when the next calendar day falls in a different month."""
    return (d + timedelta(days=1)).month != d.month


def month_start(d: date) -> date:
    """First day of the month containing ``d``."""
    return d.replace(day=1)


def add_months(d: date, months: int) -> date:
    """Shift the first day of ``d``'s month by ``months`` (may be negative)."""
    index = d.year * 12 + (d.month - 1) + months
    return date(index // 12, index % 12 + 1, 1)


def month_end(d: date) -> date:
    """Last day of the month containing ``d``."""
    return add_months(d, 1) - timedelta(days=1)


def retention_cutoff(today: date, months: int) -> date:
    """First day that is still retained when keeping ``months`` whole months.

    The current month counts as one of them, so ``months=2`` keeps the
    current and previous month and returns the first day of the previous
    month.
    """
    return add_months(month_start(today), -(months - 1))


def parse_month(value: str) -> date:
    """Parse ``YYYY-MM`` into the first day of that month.

    Raises:
        ValueError: The value is not a valid year and month.
    """
    try:
        year, month = value.split("-")
        return date(int(year), int(month), 1)
    except (AttributeError, TypeError, ValueError):
        raise ValueError(f"Invalid month {value!r}; expected YYYY-MM")

"""Date formatting utilities."""

from typing import Any


def format_date(date: Any) -> str:
    """
    Format a date to a YYYY-MM-DD string.

    Args:
        date: datetime object or ISO-8601 string (empty for unknown)

    Returns:
        Formatted date string, or "-" when unknown
    """
    if hasattr(date, "strftime"):
        return date.strftime("%Y-%m-%d")
    if not date:
        return "-"
    return str(date)[:10]

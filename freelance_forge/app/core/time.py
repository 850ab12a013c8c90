"""Timezone-aware clock helpers used for model defaults and invoice dates."""

from datetime import UTC, date, datetime


def utc_now() -> datetime:
    return datetime.now(UTC)


def utc_today() -> date:
    """Default issue date for invoices created without an explicit date."""
    return utc_now().date()

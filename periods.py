import re
from datetime import date, datetime
from typing import Optional
from zoneinfo import ZoneInfo

MONTH_KEY_RE = re.compile(r"^\d{4}-\d{2}$")


def month_key(value: date) -> str:
    return value.isoformat()[:7]


def current_month_key(timezone: str, *, today: Optional[date] = None) -> str:
    today = today or datetime.now(ZoneInfo(timezone)).date()
    return month_key(today)


def parse_month_key(value: str) -> str:
    """Validate a ``YYYY-MM`` key and return it unchanged."""
    raw = (value or "").strip()
    if not MONTH_KEY_RE.match(raw):
        raise ValueError("Month must be in YYYY-MM format")
    month = int(raw[5:7])
    if month < 1 or month > 12:
        raise ValueError("Month must be between 01 and 12")
    return raw


def resolve_month(month: Optional[str], timezone: str, *, today: Optional[date] = None) -> str:
    if not month:
        return current_month_key(timezone, today=today)
    return parse_month_key(month)

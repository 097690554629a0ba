from __future__ import annotations

import re
from datetime import date
from typing import Optional


_MONTH_RE = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")


def is_month_key(value: object) -> bool:
    """True for "YYYY-MM" strings with a real month."""
    return isinstance(value, str) and _MONTH_RE.match(value) is not None


def month_key(d: date) -> str:
    return f"{d.year:04d}-{d.month:02d}"


def month_key_from(iso_date: str) -> str:
    """Month key of a "YYYY-MM-DD" date string."""
    key = iso_date[:7]
    if not is_month_key(key):
        raise ValueError(f"Not an ISO date: {iso_date!r}")
    return key


def shift_month(key: str, offset: int) -> str:
    """Move a month key by `offset` months (negative goes back)."""
    if not is_month_key(key):
        raise ValueError(f"Not a month key: {key!r}")
    year, month = int(key[:4]), int(key[5:7])
    index = year * 12 + (month - 1) + offset
    return f"{index // 12:04d}-{index % 12 + 1:02d}"


def active_month(offset: int = 0, *, today: Optional[date] = None) -> str:
    """The month being viewed: the current month shifted by a navigation offset."""
    return shift_month(month_key(today or date.today()), offset)


__all__ = ["active_month", "is_month_key", "month_key", "month_key_from", "shift_month"]

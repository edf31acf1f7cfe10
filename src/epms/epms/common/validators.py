from __future__ import annotations

import math
from datetime import date
from typing import Any, Iterable, Optional

from ..core.constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from ..core.exceptions import ValidationError
from .datetime_utils import parse_iso_date


def require_non_empty(value: Optional[str], field_name: str) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(f"{field_name} is required")
    return str(value).strip()


def require_one_of(value: str, field_name: str, allowed: Iterable[str]) -> str:
    allowed = list(allowed)
    if value not in allowed:
        raise ValidationError(f"Invalid {field_name}")
    return value


def optional_text(value: Any) -> Optional[str]:
    """Empty strings are stored as NULL."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def parse_optional_int(value: Any, field_name: str) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field_name} must be an integer")


def parse_optional_float(value: Any, field_name: str) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field_name} must be a number")
    if not math.isfinite(number):
        raise ValidationError(f"{field_name} must be a finite number")
    return number


def parse_optional_date(value: Any, field_name: str) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, date):
        return value
    try:
        return parse_iso_date(str(value)[:10])
    except ValueError:
        raise ValidationError(f"{field_name} must be a date (YYYY-MM-DD)")


def parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return str(value).strip().lower() in {"1", "true", "yes", "on"}


def parse_pagination(page: Any, limit: Any, *, default_limit: int = DEFAULT_PAGE_SIZE) -> tuple[int, int]:
    """Return (page, limit) with page >= 1 and 1 <= limit <= MAX_PAGE_SIZE."""
    try:
        page_n = max(int(page or 1), 1)
    except (TypeError, ValueError):
        page_n = 1
    try:
        limit_n = int(limit or default_limit)
    except (TypeError, ValueError):
        limit_n = default_limit
    limit_n = min(max(limit_n, 1), MAX_PAGE_SIZE)
    return page_n, limit_n

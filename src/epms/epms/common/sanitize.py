"""Input sanitisation helpers.

Text fields that end up rendered by the admin UI go through
``sanitize_string``; free-form rich text (descriptions) goes through
``strip_dangerous_tags`` so that formatting survives.
"""

from __future__ import annotations

import math
import re
import uuid
from datetime import datetime
from typing import Any, Optional

_HTML_ENTITIES = {
    "&": "&amp;",
    "<": "&lt;",
    ">": "&gt;",
    '"': "&quot;",
    "'": "&#x27;",
    "/": "&#x2F;",
    "`": "&#x60;",
    "=": "&#x3D;",
}
_HTML_ESCAPE_RE = re.compile(r"[&<>\"'`=/]")

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_UUID_RE = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE)

_SCRIPT_RE = re.compile(r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>", re.IGNORECASE)
_QUOTED_HANDLER_RE = re.compile(r"\s*on\w+\s*=\s*[\"'][^\"']*[\"']", re.IGNORECASE)
_BARE_HANDLER_RE = re.compile(r"\s*on\w+\s*=\s*[^\s>]+", re.IGNORECASE)
_DANGEROUS_SCHEME_RE = re.compile(r"(?:javascript|data|vbscript)\s*:", re.IGNORECASE)


def escape_html(value: Optional[str]) -> str:
    if value is None:
        return ""
    return _HTML_ESCAPE_RE.sub(lambda m: _HTML_ENTITIES[m.group(0)], str(value))


def sanitize_string(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    return escape_html(str(value).strip())


def sanitize_mapping(data: dict) -> dict:
    """Escape every string in a (possibly nested) mapping."""
    out: dict = {}
    for key, value in data.items():
        out[key] = _sanitize_value(value)
    return out


def _sanitize_value(value: Any) -> Any:
    if isinstance(value, str):
        return escape_html(value)
    if isinstance(value, dict):
        return sanitize_mapping(value)
    if isinstance(value, list):
        return [_sanitize_value(v) for v in value]
    return value


def strip_dangerous_tags(html: Optional[str]) -> Optional[str]:
    if html is None:
        return None
    clean = _SCRIPT_RE.sub("", html)
    clean = _QUOTED_HANDLER_RE.sub("", clean)
    clean = _BARE_HANDLER_RE.sub("", clean)
    clean = _DANGEROUS_SCHEME_RE.sub("", clean)
    return clean.strip()


def is_valid_email(value: Optional[str]) -> bool:
    return bool(value) and _EMAIL_RE.match(value) is not None


def _as_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def is_positive_number(value: Any) -> bool:
    n = _as_float(value)
    return n is not None and n > 0


def is_non_negative_number(value: Any) -> bool:
    n = _as_float(value)
    return n is not None and n >= 0


def is_valid_date(value: Optional[str]) -> bool:
    if not value:
        return False
    try:
        datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return False
    return True


def is_valid_uuid(value: Optional[str]) -> bool:
    return bool(value) and _UUID_RE.match(value) is not None


def new_uuid() -> str:
    return str(uuid.uuid4())

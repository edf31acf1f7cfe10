from __future__ import annotations

from typing import Any, Optional

from ..common.validators import parse_optional_int
from ..core.constants import DEFAULT_RISK_IMPACT, DEFAULT_RISK_PROBABILITY, RISK_SCALE_MAX, RISK_SCALE_MIN
from ..core.enums import RiskLevel
from ..core.exceptions import ValidationError


def parse_scale(value: Any, field_name: str, *, default: Optional[int] = None) -> Optional[int]:
    """Parse a probability/impact rating on the 1..5 scale."""
    n = parse_optional_int(value, field_name)
    if n is None:
        return default
    if not RISK_SCALE_MIN <= n <= RISK_SCALE_MAX:
        raise ValidationError(f"{field_name} must be between {RISK_SCALE_MIN} and {RISK_SCALE_MAX}")
    return n


def risk_score(probability: Optional[int], impact: Optional[int]) -> int:
    return (probability or DEFAULT_RISK_PROBABILITY) * (impact or DEFAULT_RISK_IMPACT)


def risk_level(score: int) -> str:
    if score >= 20:
        return RiskLevel.CRITICAL.value
    if score >= 12:
        return RiskLevel.HIGH.value
    if score >= 6:
        return RiskLevel.MEDIUM.value
    return RiskLevel.LOW.value

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class Risk:
    risk_id: int
    project_id: int
    risk_key: str
    title: str
    status: str
    probability: int
    impact: int
    owner_id: Optional[int] = None

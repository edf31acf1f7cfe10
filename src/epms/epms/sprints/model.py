from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Optional


@dataclass(frozen=True)
class Sprint:
    sprint_id: int
    project_id: int
    name: str
    status: str
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    extended_to: Optional[date] = None
    committed_points: int = 0


@dataclass(frozen=True)
class CompletedWork:
    """Story points finished on one calendar day."""

    day: date
    points: int

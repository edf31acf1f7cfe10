from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Iterable, List, Optional

from .model import CompletedWork


@dataclass(frozen=True)
class BurndownPoint:
    date: date
    ideal: float
    actual: Optional[int]
    completed: int


@dataclass(frozen=True)
class BurndownChart:
    points: List[BurndownPoint]
    total_points: int
    completed_points: int
    remaining_points: int
    total_days: int
    days_remaining: int
    daily_burn_rate: float
    status: str

    def to_dict(self) -> dict:
        return {
            "chartData": [
                {"date": p.date.isoformat(), "ideal": p.ideal, "actual": p.actual, "completed": p.completed}
                for p in self.points
            ],
            "summary": {
                "totalPoints": self.total_points,
                "completedPoints": self.completed_points,
                "remainingPoints": self.remaining_points,
                "totalDays": self.total_days,
                "daysRemaining": self.days_remaining,
                "dailyBurnRate": self.daily_burn_rate,
                "status": self.status,
            },
        }


def build_burndown(
    *,
    start: date,
    end: date,
    committed_points: int,
    completed: Iterable[CompletedWork],
    today: date,
) -> BurndownChart:
    """Ideal vs. actual remaining story points for each day of a sprint.

    The ideal line drops by ``committed / total_days`` per day. The actual line
    subtracts points of tasks completed on or before each day and is ``None``
    for days after ``today``.
    """

    total_days = max((end - start).days + 1, 1)
    daily_burn = committed_points / total_days
    by_day = {}
    for work in completed:
        by_day[work.day] = by_day.get(work.day, 0) + int(work.points)

    points: List[BurndownPoint] = []
    for i in range(total_days):
        day = start + timedelta(days=i)
        ideal = round(max(0.0, committed_points - daily_burn * i), 1)
        if day <= today:
            done_so_far = sum(v for d, v in by_day.items() if d <= day)
            points.append(
                BurndownPoint(date=day, ideal=ideal, actual=max(committed_points - done_so_far, 0), completed=done_so_far)
            )
        else:
            points.append(BurndownPoint(date=day, ideal=ideal, actual=None, completed=0))

    done_total = sum(by_day.values())
    remaining = max(committed_points - done_total, 0)
    days_passed = min(max((today - start).days, 0), total_days)
    expected = committed_points - daily_burn * days_passed
    if remaining <= expected:
        status = "on_track"
    elif remaining <= expected * 1.1:
        status = "at_risk"
    else:
        status = "behind"

    return BurndownChart(
        points=points,
        total_points=committed_points,
        completed_points=done_total,
        remaining_points=remaining,
        total_days=total_days,
        days_remaining=max((end - today).days, 0),
        daily_burn_rate=round(daily_burn, 1),
        status=status,
    )

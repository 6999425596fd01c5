"""
domains/funding/metrics.py

Derived funding metrics shared by the backend (pledge validation) and the
frontend (cards, progress bars, charts).

All functions are pure: "today" is injectable so results are deterministic.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union

DateLike = Union[str, date, datetime]

_FRACTION = re.compile(r"\.(\d+)(?=[+-]\d\d:?\d\d$|$)")


def _iso_text(value: Any) -> str:
    """Normalize an ISO timestamp so datetime.fromisoformat accepts it on 3.9+."""
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    # Hosted rows drop trailing zeros (".0261") or carry more than 6 digits
    return _FRACTION.sub(lambda m: "." + (m.group(1) + "000000")[:6], text, count=1)


def parse_date(value: DateLike) -> date:
    """Parse an ISO date/timestamp (including a trailing 'Z') into a calendar date."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = _iso_text(value)
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        return date.fromisoformat(text[:10])


def parse_timestamp(value: DateLike) -> datetime:
    """Parse to an aware datetime; values without an offset are taken as UTC."""
    if isinstance(value, datetime):
        ts = value
    elif isinstance(value, date):
        ts = datetime(value.year, value.month, value.day)
    else:
        ts = datetime.fromisoformat(_iso_text(value))
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


def round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def percent_funded(current_amount: float, goal_amount: float) -> float:
    """current / goal * 100, unclamped. A non-positive goal reads as 0%."""
    if not goal_amount or goal_amount <= 0:
        return 0.0
    return (float(current_amount or 0.0) / float(goal_amount)) * 100.0


def progress_width(current_amount: float, goal_amount: float) -> float:
    """Progress bar width in percent, clamped to [0, 100]."""
    return max(0.0, min(100.0, percent_funded(current_amount, goal_amount)))


def percent_label(current_amount: float, goal_amount: float) -> int:
    return round_half_up(percent_funded(current_amount, goal_amount))


def is_completed(current_amount: float, goal_amount: float) -> bool:
    return float(current_amount or 0.0) >= float(goal_amount)


def remaining_amount(current_amount: float, goal_amount: float) -> float:
    return float(goal_amount) - float(current_amount or 0.0)


def days_left(end_date: DateLike, today: Optional[date] = None) -> int:
    """Calendar days from today until end_date, never negative."""
    today = today or date.today()
    return max(0, (parse_date(end_date) - today).days)


def pledge_limit_error(amount: float, current_amount: float, goal_amount: float) -> Optional[str]:
    """
    Return the user-facing refusal for a pledge amount, or None if acceptable.

    The same check runs in the client (before any network call) and in the
    facade; the data layer enforces it atomically.
    """
    if amount is None or math.isnan(amount) or amount <= 0:
        return "Pledge amount must be greater than zero"
    remaining = remaining_amount(current_amount, goal_amount)
    if amount > remaining:
        return f"The maximum pledge amount available is ${max(remaining, 0.0):.2f}"
    return None


@dataclass(frozen=True)
class FundingSummary:
    percent: float
    percent_label: int
    progress_width: float
    days_left: int
    completed: bool
    remaining: float


def summarize(project: Any, today: Optional[date] = None) -> FundingSummary:
    """Compute every derived metric for a project (model or row dict)."""
    current = _field(project, "current_amount") or 0.0
    goal = _field(project, "goal_amount")
    return FundingSummary(
        percent=percent_funded(current, goal),
        percent_label=percent_label(current, goal),
        progress_width=progress_width(current, goal),
        days_left=days_left(_field(project, "end_date"), today=today),
        completed=is_completed(current, goal),
        remaining=remaining_amount(current, goal),
    )


def funding_series(pledges: Iterable[Any]) -> List[Dict[str, Any]]:
    """
    Cumulative pledge totals, one point per pledge in time order.

    Labels are truncated to the day ("Oct 3"); same-day pledges are not merged.
    """
    ordered = sorted(pledges, key=lambda p: parse_timestamp(_field(p, "created_at")))
    points: List[Dict[str, Any]] = []
    total = 0.0
    for pledge in ordered:
        ts = parse_timestamp(_field(pledge, "created_at"))
        total += float(_field(pledge, "amount"))
        points.append({
            "date": f"{ts:%b} {ts.day}",
            "created_at": ts,
            "total": total,
        })
    return points


def filter_projects(projects: Sequence[Any], term: str) -> List[Any]:
    """Case-insensitive substring match on title or description."""
    needle = (term or "").lower()
    if not needle:
        return list(projects)
    return [
        p for p in projects
        if needle in (_field(p, "title") or "").lower()
        or needle in (_field(p, "description") or "").lower()
    ]


def format_money(value: Optional[float]) -> str:
    if value is None or (isinstance(value, float) and math.isnan(value)):
        return "n/a"
    if float(value).is_integer():
        return f"${value:,.0f}"
    return f"${value:,.2f}"


def _field(obj: Any, name: str) -> Any:
    if isinstance(obj, Mapping):
        return obj.get(name)
    return getattr(obj, name, None)

"""
Due-date scheduling for problem revisions.

A problem is due on the exact day its elapsed days since last solved equal one
of the configured revision intervals. Missing that day means the tier is
skipped; there is no catch-up. Originals revised earlier today are left out of
every tier.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, tzinfo
from typing import Iterable, List, Optional, Sequence, Set
import uuid

from revision_planner.config import Config
from revision_planner.data.schemas import ProblemRecord
from revision_planner.utils.time import as_utc, calendar_day, get_timezone

ONE_DAY = timedelta(days=1)


@dataclass(frozen=True)
class RevisionInterval:
    days: int
    label: str


@dataclass
class DueTier:
    interval: RevisionInterval
    problems: List[ProblemRecord] = field(default_factory=list)


@dataclass
class DueSchedule:
    tiers: List[DueTier]

    @property
    def total_due(self) -> int:
        return sum(len(tier.problems) for tier in self.tiers)


def interval_label(days: int) -> str:
    return "1 day ago" if days == 1 else f"{days} days ago"


def build_intervals(days: Iterable[int]) -> List[RevisionInterval]:
    return [RevisionInterval(days=d, label=interval_label(d)) for d in sorted(days)]


def default_intervals() -> List[RevisionInterval]:
    return build_intervals(Config.REVISION_INTERVALS)


def days_since(timestamp: datetime, now: datetime) -> int:
    return (as_utc(now) - as_utc(timestamp)) // ONE_DAY


def is_due(problem: ProblemRecord, interval: RevisionInterval, now: datetime) -> bool:
    if problem.last_solved_at is None:
        return False
    return days_since(problem.last_solved_at, now) == interval.days


def revised_today_ids(
    problems: Iterable[ProblemRecord], now: datetime, tz: tzinfo
) -> Set[uuid.UUID]:
    """Ids of originals that already have a revision dated today."""
    today = calendar_day(now, tz)
    return {
        p.original_problem_id
        for p in problems
        if p.is_revision
        and p.original_problem_id is not None
        and p.last_solved_at is not None
        and calendar_day(p.last_solved_at, tz) == today
    }


def due_today(
    problems: Sequence[ProblemRecord],
    now: datetime,
    intervals: Optional[Sequence[RevisionInterval]] = None,
    tz: Optional[tzinfo] = None,
) -> DueSchedule:
    intervals = intervals if intervals is not None else default_intervals()
    tz = tz or get_timezone()
    revised = revised_today_ids(problems, now, tz)
    originals = [p for p in problems if not p.is_revision and p.id not in revised]

    tiers = []
    for interval in sorted(intervals, key=lambda i: i.days):
        matching = [p for p in originals if is_due(p, interval, now)]
        if matching:
            tiers.append(DueTier(interval=interval, problems=matching))
    return DueSchedule(tiers=tiers)


def next_due_date(
    last_solved_at: datetime,
    solve_count: int,
    intervals: Optional[Sequence[RevisionInterval]] = None,
) -> datetime:
    """Next review date for the details view, stepping one interval per solve."""
    intervals = intervals if intervals is not None else default_intervals()
    if not intervals:
        raise ValueError("At least one revision interval is required")
    step = intervals[solve_count] if 0 <= solve_count < len(intervals) else intervals[-1]
    return as_utc(last_solved_at) + timedelta(days=step.days)

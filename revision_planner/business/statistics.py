from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, tzinfo
from typing import Dict, List, Optional, Sequence

from revision_planner.business.lifecycle import can_undo
from revision_planner.data.schemas import ProblemRecord
from revision_planner.utils.time import calendar_day, get_timezone


@dataclass
class ProblemStats:
    total_problems: int
    total_originals: int
    total_revisions: int
    total_solves: int
    total_undoable: int
    active_days: int


@dataclass
class DayGroup:
    day: date
    label: str
    problems: List[ProblemRecord] = field(default_factory=list)
    revision_count: int = 0
    undoable_count: int = 0


def is_link(problem_text: str) -> bool:
    return problem_text.startswith("http")


def day_label(day: date, today: date) -> str:
    if day == today:
        return "Today"
    if day == today - timedelta(days=1):
        return "Yesterday"
    return day.strftime("%A, %d %B")


def group_by_day(
    problems: Sequence[ProblemRecord], now: datetime, tz: Optional[tzinfo] = None
) -> List[DayGroup]:
    """Archive view: problems bucketed by the calendar day they were last solved, newest day first."""
    tz = tz or get_timezone()
    today = calendar_day(now, tz)
    groups: Dict[date, DayGroup] = {}
    for problem in problems:
        if problem.last_solved_at is None:
            continue
        day = calendar_day(problem.last_solved_at, tz)
        group = groups.get(day)
        if group is None:
            group = groups[day] = DayGroup(day=day, label=day_label(day, today))
        group.problems.append(problem)
        if problem.is_revision_entry:
            group.revision_count += 1
        if can_undo(problem, now):
            group.undoable_count += 1
    return sorted(groups.values(), key=lambda g: g.day, reverse=True)


def summarize(
    problems: Sequence[ProblemRecord], now: datetime, tz: Optional[tzinfo] = None
) -> ProblemStats:
    tz = tz or get_timezone()
    revisions = [p for p in problems if p.is_revision_entry]
    active_days = {
        calendar_day(p.last_solved_at, tz) for p in problems if p.last_solved_at is not None
    }
    return ProblemStats(
        total_problems=len(problems),
        total_originals=len(problems) - len(revisions),
        total_revisions=len(revisions),
        total_solves=sum(p.solve_count or 0 for p in problems),
        total_undoable=sum(1 for p in revisions if can_undo(p, now)),
        active_days=len(active_days),
    )

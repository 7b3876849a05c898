from datetime import datetime
from typing import List, Optional, Sequence

from revision_planner.business.lifecycle import can_undo
from revision_planner.business.scheduling import due_today, next_due_date
from revision_planner.business.statistics import group_by_day, is_link, summarize
from revision_planner.data.schemas import (
    DayGroupResponse,
    DueScheduleResponse,
    DueTierResponse,
    ProblemDetailResponse,
    ProblemRecord,
    ProblemResponse,
    ProblemStatsResponse,
    SnapshotMessage,
)


def to_response(record: ProblemRecord, now: datetime) -> ProblemResponse:
    return ProblemResponse(
        **record.model_dump(),
        is_link=is_link(record.problem_text),
        can_undo=can_undo(record, now),
    )


def build_due_response(problems: Sequence[ProblemRecord], now: datetime) -> DueScheduleResponse:
    schedule = due_today(problems, now)
    return DueScheduleResponse(
        tiers=[
            DueTierResponse(
                days=tier.interval.days,
                label=tier.interval.label,
                problems=[to_response(p, now) for p in tier.problems],
            )
            for tier in schedule.tiers
        ],
        total_due=schedule.total_due,
    )


def build_stats_response(problems: Sequence[ProblemRecord], now: datetime) -> ProblemStatsResponse:
    stats = summarize(problems, now)
    return ProblemStatsResponse(**vars(stats))


def build_archive_response(
    problems: Sequence[ProblemRecord], now: datetime
) -> List[DayGroupResponse]:
    return [
        DayGroupResponse(
            day=group.day,
            label=group.label,
            problems=[to_response(p, now) for p in group.problems],
            revision_count=group.revision_count,
            undoable_count=group.undoable_count,
        )
        for group in group_by_day(problems, now)
    ]


def build_detail_response(
    record: ProblemRecord, problems: Sequence[ProblemRecord], now: datetime
) -> ProblemDetailResponse:
    revisions = [p for p in problems if p.original_problem_id == record.id]
    next_due_on: Optional[datetime] = None
    if record.last_solved_at is not None:
        next_due_on = next_due_date(record.last_solved_at, record.solve_count)
    return ProblemDetailResponse(
        **to_response(record, now).model_dump(),
        next_due_on=next_due_on,
        revisions=[to_response(p, now) for p in revisions],
    )


def build_snapshot(
    problems: Sequence[ProblemRecord], now: datetime, error: Optional[str] = None
) -> SnapshotMessage:
    return SnapshotMessage(
        problems=[to_response(p, now) for p in problems],
        due=build_due_response(problems, now),
        stats=build_stats_response(problems, now),
        error=error,
    )

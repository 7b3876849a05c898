from datetime import datetime, timedelta

from revision_planner.data.schemas import ProblemRecord
from revision_planner.errors import ResourceNotFoundException, WindowExpiredException
from revision_planner.utils.time import as_utc

UNDO_WINDOW = timedelta(minutes=5)


def can_undo(record: ProblemRecord, now: datetime) -> bool:
    """Whether a revision may still be reverted. Used for display and enforcement."""
    if not record.is_revision_entry or record.created_at is None:
        return False
    return as_utc(now) - record.created_at <= UNDO_WINDOW


def ensure_undoable(record: ProblemRecord, now: datetime) -> None:
    if not record.is_revision_entry or record.original_problem_id is None:
        raise ResourceNotFoundException(detail="Revision to undo not found.")
    if not can_undo(record, now):
        raise WindowExpiredException()

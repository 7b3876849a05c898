import uuid
from datetime import datetime, timedelta, timezone

import pytest

from revision_planner.business.lifecycle import UNDO_WINDOW, can_undo, ensure_undoable
from revision_planner.data.schemas import ProblemRecord
from revision_planner.errors import ResourceNotFoundException, WindowExpiredException

NOW = datetime(2024, 5, 10, 12, 0, tzinfo=timezone.utc)


def make_revision(age: timedelta, **fields):
    values = {
        "id": uuid.uuid4(),
        "owner_id": uuid.uuid4(),
        "problem_text": "https://leetcode.com/problems/two-sum/",
        "last_solved_at": NOW - age,
        "created_at": NOW - age,
        "is_revision": True,
        "original_problem_id": uuid.uuid4(),
    }
    values.update(fields)
    return ProblemRecord(**values)


def test_undo_window_is_five_minutes():
    assert UNDO_WINDOW == timedelta(minutes=5)


def test_fresh_revision_can_be_undone():
    assert can_undo(make_revision(timedelta(minutes=1)), NOW)


def test_boundary_is_inclusive():
    assert can_undo(make_revision(timedelta(minutes=5)), NOW)
    assert not can_undo(make_revision(timedelta(minutes=5, seconds=1)), NOW)


def test_original_cannot_be_undone():
    original = make_revision(
        timedelta(seconds=10), is_revision=False, original_problem_id=None
    )
    assert not can_undo(original, NOW)
    with pytest.raises(ResourceNotFoundException):
        ensure_undoable(original, NOW)


def test_linked_record_counts_as_revision():
    # Older rows may carry only the back-reference
    linked = make_revision(timedelta(minutes=2), is_revision=False)
    assert can_undo(linked, NOW)


def test_expired_revision_raises_window_expired():
    with pytest.raises(WindowExpiredException) as exc_info:
        ensure_undoable(make_revision(timedelta(minutes=6)), NOW)
    assert exc_info.value.status_code == 409
    assert "5 minutes" in exc_info.value.detail


def test_missing_created_at_is_not_undoable():
    assert not can_undo(make_revision(timedelta(0), created_at=None), NOW)

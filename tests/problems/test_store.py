import uuid
from datetime import timedelta
from unittest.mock import AsyncMock, patch

import pytest

from revision_planner.business.scheduling import due_today
from revision_planner.business.services import ProblemStore, StoreRegistry
from revision_planner.data.repositories import async_session_maker
from revision_planner.data.schemas import ErrorKind, ProblemCreate
from revision_planner.errors import DatabaseException

STORE_MODULE = "revision_planner.business.services.problem_store"


def make_store(test_user, clock):
    return ProblemStore(test_user.id, async_session_maker, clock)


async def persisted(test_user, clock):
    """Reads the owner's rows back through a fresh store."""
    store = make_store(test_user, clock)
    await store.refresh()
    return {p.id: p for p in store.list()}


@pytest.mark.asyncio
async def test_add_problem_from_text(test_user, clock):
    store = make_store(test_user, clock)

    result = await store.add("  Two Sum  ")

    assert result.success
    assert result.problem.problem_text == "Two Sum"
    assert result.problem.solve_count == 1
    assert result.problem.is_revision is False
    assert result.problem.last_solved_at == clock.now
    assert [p.id for p in store.list()] == [result.problem.id]
    assert result.problem.id in await persisted(test_user, clock)


@pytest.mark.asyncio
async def test_add_structured_problem(test_user, clock):
    store = make_store(test_user, clock)

    result = await store.add(
        {
            "problem_text": "https://leetcode.com/problems/lru-cache/",
            "difficulty": "medium",
            "platform": "LeetCode",
            "tags": ["design", " design ", "hash map"],
        }
    )

    assert result.success
    assert result.problem.difficulty.value == "medium"
    assert result.problem.platform == "LeetCode"
    assert result.problem.tags == ["design", "hash map"]


@pytest.mark.asyncio
async def test_add_blank_text_is_rejected(test_user, clock):
    store = make_store(test_user, clock)

    result = await store.add("   ")

    assert not result.success
    assert result.error_kind == ErrorKind.VALIDATION
    assert result.message == "Problem text cannot be empty."
    assert store.list() == []
    assert await persisted(test_user, clock) == {}


@pytest.mark.asyncio
async def test_add_shows_record_before_write_completes(test_user, clock):
    store = make_store(test_user, clock)
    await store.refresh()
    seen = []

    async def slow_write(db, record):
        seen.extend(p.id for p in store.list())
        raise DatabaseException(detail="Failed to add the problem.")

    with patch(f"{STORE_MODULE}.create_problem_in_db", AsyncMock(side_effect=slow_write)):
        result = await store.add(ProblemCreate(problem_text="Two Sum"))

    assert len(seen) == 1
    assert not result.success
    assert result.error_kind == ErrorKind.PERSISTENCE
    assert result.message == "Failed to add the problem."
    # Rolled back to the state before the add
    assert store.list() == []


@pytest.mark.asyncio
async def test_delete_keeps_linked_revisions(test_user, clock, problem_factory):
    original = await problem_factory(last_solved_at=clock.now - timedelta(days=3), solve_count=2)
    revision = await problem_factory(
        last_solved_at=clock.now - timedelta(days=1),
        is_revision=True,
        original_problem_id=original.id,
    )
    store = make_store(test_user, clock)

    result = await store.delete(original.id)

    assert result.success
    assert result.problem.id == original.id
    assert [p.id for p in store.list()] == [revision.id]
    assert set(await persisted(test_user, clock)) == {revision.id}


@pytest.mark.asyncio
async def test_delete_unknown_problem(test_user, clock, problem_factory):
    await problem_factory(last_solved_at=clock.now)
    store = make_store(test_user, clock)

    result = await store.delete(uuid.uuid4())

    assert not result.success
    assert result.error_kind == ErrorKind.NOT_FOUND
    assert len(store.list()) == 1


@pytest.mark.asyncio
async def test_delete_failure_restores_problem(test_user, clock, problem_factory):
    problem = await problem_factory(last_solved_at=clock.now)
    store = make_store(test_user, clock)
    await store.refresh()
    failing = AsyncMock(side_effect=DatabaseException(detail="Failed to delete the problem."))

    with patch(f"{STORE_MODULE}.delete_problem_from_db", failing):
        result = await store.delete(problem.id)

    assert result.error_kind == ErrorKind.PERSISTENCE
    assert [p.id for p in store.list()] == [problem.id]


@pytest.mark.asyncio
async def test_solve_again_and_undo(test_user, clock, problem_factory):
    original = await problem_factory(
        problem_text="Two Sum", last_solved_at=clock.now - timedelta(days=3)
    )
    store = make_store(test_user, clock)
    await store.refresh()
    assert due_today(store.list(), clock.now).total_due == 1

    solved = await store.solve_again(original.id)

    assert solved.success
    revision = solved.problem
    assert revision.is_revision is True
    assert revision.original_problem_id == original.id
    assert revision.problem_text == "Two Sum"
    assert revision.last_solved_at == clock.now
    assert store.get(original.id).solve_count == 2
    # Revised today, so no longer offered
    assert due_today(store.list(), clock.now).total_due == 0
    rows = await persisted(test_user, clock)
    assert rows[original.id].solve_count == 2
    assert revision.id in rows

    clock.advance(minutes=2)
    undone = await store.undo_revision(revision.id)

    assert undone.success
    assert store.get(revision.id) is None
    assert store.get(original.id).solve_count == 1
    assert due_today(store.list(), clock.now).total_due == 1
    rows = await persisted(test_user, clock)
    assert set(rows) == {original.id}
    assert rows[original.id].solve_count == 1


@pytest.mark.asyncio
async def test_solve_again_does_not_touch_original_timestamp(test_user, clock, problem_factory):
    solved_at = clock.now - timedelta(days=7)
    original = await problem_factory(last_solved_at=solved_at)
    store = make_store(test_user, clock)

    await store.solve_again(original.id)

    assert store.get(original.id).last_solved_at == solved_at


@pytest.mark.asyncio
async def test_solve_again_unknown_problem(test_user, clock):
    store = make_store(test_user, clock)

    result = await store.solve_again(uuid.uuid4())

    assert result.error_kind == ErrorKind.NOT_FOUND
    assert result.message == "Original problem not found."


@pytest.mark.asyncio
async def test_solve_again_failure_rolls_back_both_changes(test_user, clock, problem_factory):
    original = await problem_factory(last_solved_at=clock.now - timedelta(days=1))
    store = make_store(test_user, clock)
    await store.refresh()
    failing = AsyncMock(side_effect=DatabaseException(detail="Failed to record the revision."))

    with patch(f"{STORE_MODULE}.create_revision_in_db", failing):
        result = await store.solve_again(original.id)

    assert result.error_kind == ErrorKind.PERSISTENCE
    assert [p.id for p in store.list()] == [original.id]
    assert store.get(original.id).solve_count == 1


@pytest.mark.asyncio
async def test_undo_after_window_is_rejected(test_user, clock, problem_factory):
    original = await problem_factory(last_solved_at=clock.now - timedelta(days=1))
    store = make_store(test_user, clock)
    revision = (await store.solve_again(original.id)).problem

    clock.advance(minutes=6)
    result = await store.undo_revision(revision.id)

    assert not result.success
    assert result.error_kind == ErrorKind.WINDOW_EXPIRED
    assert store.get(revision.id) is not None
    assert store.get(original.id).solve_count == 2
    rows = await persisted(test_user, clock)
    assert revision.id in rows
    assert rows[original.id].solve_count == 2


@pytest.mark.asyncio
async def test_undo_of_original_is_rejected(test_user, clock, problem_factory):
    original = await problem_factory(last_solved_at=clock.now)
    store = make_store(test_user, clock)

    result = await store.undo_revision(original.id)

    assert result.error_kind == ErrorKind.NOT_FOUND
    assert store.get(original.id).solve_count == 1


@pytest.mark.asyncio
async def test_undo_when_original_was_deleted(test_user, clock, problem_factory):
    original = await problem_factory(last_solved_at=clock.now - timedelta(days=1))
    store = make_store(test_user, clock)
    revision = (await store.solve_again(original.id)).problem
    await store.delete(original.id)

    result = await store.undo_revision(revision.id)

    assert result.success
    assert store.list() == []
    assert await persisted(test_user, clock) == {}


@pytest.mark.asyncio
async def test_solve_count_tracks_revisions(test_user, clock, problem_factory):
    original = await problem_factory(last_solved_at=clock.now - timedelta(days=15))
    store = make_store(test_user, clock)

    first = (await store.solve_again(original.id)).problem
    await store.solve_again(original.id)
    await store.solve_again(original.id)
    await store.undo_revision(first.id)

    revisions = [p for p in store.list() if p.original_problem_id == original.id]
    assert len(revisions) == 2
    assert store.get(original.id).solve_count == 1 + len(revisions)
    rows = await persisted(test_user, clock)
    assert rows[original.id].solve_count == 3


@pytest.mark.asyncio
async def test_subscribe_delivers_current_and_later_lists(test_user, clock, problem_factory):
    await problem_factory(last_solved_at=clock.now - timedelta(days=1))
    store = make_store(test_user, clock)
    deliveries = []

    unsubscribe = await store.subscribe(deliveries.append)

    assert len(deliveries) == 1
    assert len(deliveries[0]) == 1

    await store.add("Valid Parentheses")
    assert len(deliveries) == 2
    assert deliveries[-1][0].problem_text == "Valid Parentheses"

    unsubscribe()
    await store.add("Merge Intervals")
    assert len(deliveries) == 2


@pytest.mark.asyncio
async def test_failed_operation_does_not_notify(test_user, clock):
    store = make_store(test_user, clock)
    deliveries = []
    await store.subscribe(deliveries.append)

    await store.add("")

    assert len(deliveries) == 1


@pytest.mark.asyncio
async def test_async_listener_is_awaited(test_user, clock):
    store = make_store(test_user, clock)
    deliveries = []

    async def listener(problems):
        deliveries.append(len(problems))

    await store.subscribe(listener)
    await store.add("Two Sum")

    assert deliveries == [0, 1]


@pytest.mark.asyncio
async def test_raising_listener_is_dropped(test_user, clock):
    store = make_store(test_user, clock)
    calls = []
    healthy = []

    def broken(problems):
        calls.append(len(problems))
        if problems:
            raise RuntimeError("socket closed")

    await store.subscribe(broken)
    await store.subscribe(healthy.append)
    await store.add("Two Sum")
    await store.add("Three Sum")

    assert calls == [0, 1]
    assert [len(p) for p in healthy] == [0, 1, 2]


@pytest.mark.asyncio
async def test_apply_snapshot_dedupes_by_id(test_user, clock, problem_factory):
    await problem_factory(last_solved_at=clock.now - timedelta(days=2))
    store = make_store(test_user, clock)
    await store.refresh()
    added = (await store.add("Two Sum")).problem

    # The change echoes back in a full result set alongside the local state
    await store.apply_snapshot(store.list() + [added])

    assert len(store.list()) == 2
    assert store.list()[0].id == added.id


@pytest.mark.asyncio
async def test_refresh_failure_keeps_last_known_list(test_user, clock, problem_factory):
    problem = await problem_factory(last_solved_at=clock.now)
    store = make_store(test_user, clock)
    await store.refresh()
    failing = AsyncMock(side_effect=DatabaseException(detail="Failed to retrieve problems."))

    with patch(f"{STORE_MODULE}.list_problems_for_owner", failing):
        result = await store.refresh()

    assert result.error_kind == ErrorKind.PERSISTENCE
    assert store.error == "Failed to load revision problems."
    assert [p.id for p in store.list()] == [problem.id]

    await store.refresh()
    assert store.error is None


@pytest.mark.asyncio
async def test_store_only_sees_its_owner(test_user, clock, other_owner_id):
    store = make_store(test_user, clock)
    await store.add("Two Sum")

    other = ProblemStore(other_owner_id, async_session_maker, clock)
    await other.refresh()

    assert other.list() == []


def test_registry_releases_idle_stores(clock, other_owner_id):
    registry = StoreRegistry(async_session_maker, clock, idle_timeout=600)
    expired_owner = uuid.uuid4()
    registry.get(expired_owner)

    clock.advance(minutes=5)
    registry.get(other_owner_id)
    assert len(registry) == 2

    # The first session's cookie lapses without a logout
    clock.advance(minutes=6)
    registry.get(other_owner_id)

    assert len(registry) == 1
    assert registry.evict_idle(clock.now + timedelta(minutes=11)) == 1
    assert len(registry) == 0


@pytest.mark.asyncio
async def test_registry_keeps_stores_with_listeners(test_user, clock):
    registry = StoreRegistry(async_session_maker, clock, idle_timeout=600)
    store = registry.get(test_user.id)
    unsubscribe = await store.subscribe(lambda problems: None)

    clock.advance(hours=2)
    assert registry.evict_idle() == 0
    assert registry.get(test_user.id) is store

    unsubscribe()
    clock.advance(hours=2)
    assert registry.evict_idle() == 1
    assert registry.get(test_user.id) is not store

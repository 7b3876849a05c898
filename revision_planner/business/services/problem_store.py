import asyncio
import inspect
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Union

from fastapi import Depends
from pydantic import ValidationError

from revision_planner.business.lifecycle import ensure_undoable
from revision_planner.business.services.auth_dependency import get_current_user
from revision_planner.config import Config, logger
from revision_planner.data.repositories import (
    async_session_maker,
    create_problem_in_db,
    create_revision_in_db,
    delete_problem_from_db,
    list_problems_for_owner,
    undo_revision_in_db,
)
from revision_planner.data.schemas import (
    ErrorKind,
    ProblemCreate,
    ProblemRecord,
    UserBaseResponse,
)
from revision_planner.errors import (
    AppException,
    DatabaseException,
    ResourceNotFoundException,
    ValidationException,
    WindowExpiredException,
)
from revision_planner.utils.time import utcnow

store_logger = logger.getChild("problem_store")

Listener = Callable[[List[ProblemRecord]], Union[None, Awaitable[None]]]


@dataclass
class OperationResult:
    """Outcome of a store operation. Failures carry the error kind and message."""

    success: bool
    problem: Optional[ProblemRecord] = None
    error_kind: Optional[ErrorKind] = None
    message: Optional[str] = None
    exception: Optional[AppException] = field(default=None, repr=False)

    @classmethod
    def ok(cls, problem: Optional[ProblemRecord] = None) -> "OperationResult":
        return cls(success=True, problem=problem)

    @classmethod
    def failure(cls, exc: AppException) -> "OperationResult":
        return cls(
            success=False,
            error_kind=exc.kind or ErrorKind.PERSISTENCE,
            message=str(exc.detail),
            exception=exc,
        )

    def raise_for_error(self) -> None:
        if not self.success:
            raise self.exception


def normalize_problem_input(data: Union[str, ProblemCreate, Dict[str, Any]]) -> ProblemCreate:
    """Accepts a bare description or a structured payload."""
    try:
        if isinstance(data, str):
            payload = ProblemCreate(problem_text=data)
        elif isinstance(data, ProblemCreate):
            payload = data
        else:
            payload = ProblemCreate.model_validate(data)
    except ValidationError as e:
        raise ValidationException(detail=e.errors(include_url=False, include_input=False))
    if not payload.problem_text:
        raise ValidationException(detail="Problem text cannot be empty.")
    return payload


def _ordered(records: Iterable[ProblemRecord]) -> List[ProblemRecord]:
    return sorted(
        records,
        key=lambda p: p.last_solved_at.timestamp() if p.last_solved_at else float("-inf"),
        reverse=True,
    )


class ProblemStore:
    """
    In-memory read model of one user's problems, written through to the database.

    Mutations are applied to the local list first and rolled back if the write
    fails. Subscribers get the full list right away and again after every change.
    """

    def __init__(
        self,
        owner_id: uuid.UUID,
        session_factory=async_session_maker,
        clock: Callable[[], Any] = utcnow,
    ):
        self.owner_id = owner_id
        self.loaded = False
        self.error: Optional[str] = None
        self._session_factory = session_factory
        self._clock = clock
        self._problems: List[ProblemRecord] = []
        self._listeners: List[Listener] = []
        self._lock = asyncio.Lock()

    def now(self):
        return self._clock()

    def list(self) -> List[ProblemRecord]:
        return list(self._problems)

    def get(self, problem_id: uuid.UUID) -> Optional[ProblemRecord]:
        return next((p for p in self._problems if p.id == problem_id), None)

    async def ensure_loaded(self) -> None:
        if not self.loaded:
            await self.refresh()

    async def refresh(self) -> OperationResult:
        async with self._lock:
            try:
                async with self._session_factory() as db:
                    rows = await list_problems_for_owner(db, self.owner_id)
            except DatabaseException as e:
                store_logger.error(f"Error fetching problems for owner {self.owner_id}: {e.detail}")
                self.error = "Failed to load revision problems."
                result = OperationResult.failure(DatabaseException(detail=self.error))
            else:
                self.error = None
                self._replace(ProblemRecord.model_validate(row) for row in rows)
                result = OperationResult.ok()
        await self._publish()
        return result

    async def apply_snapshot(self, records: Iterable[ProblemRecord]) -> None:
        """Replaces local state with a full result set, keyed by id."""
        async with self._lock:
            self._replace(records)
        await self._publish()

    async def add(self, data: Union[str, ProblemCreate, Dict[str, Any]]) -> OperationResult:
        async def operation():
            try:
                payload = normalize_problem_input(data)
            except ValidationException as e:
                return OperationResult.failure(e)
            now = self.now()
            record = ProblemRecord(
                id=uuid.uuid4(),
                owner_id=self.owner_id,
                problem_text=payload.problem_text,
                difficulty=payload.difficulty,
                platform=payload.platform,
                tags=payload.tags,
                last_solved_at=now,
                created_at=now,
                solve_count=1,
                is_revision=False,
                original_problem_id=None,
            )

            async def write(db):
                row = await create_problem_in_db(db, record)
                return [ProblemRecord.model_validate(row)]

            return await self._apply_optimistically(
                lambda problems: [record] + problems, write, record.id
            )

        return await self._run("add", operation)

    async def delete(self, problem_id: uuid.UUID) -> OperationResult:
        async def operation():
            target = self.get(problem_id)
            if target is None:
                return OperationResult.failure(
                    ResourceNotFoundException(detail="Problem not found.")
                )

            async def write(db):
                await delete_problem_from_db(db, self.owner_id, problem_id)
                return []

            result = await self._apply_optimistically(
                lambda problems: [p for p in problems if p.id != problem_id], write
            )
            if result.success:
                result.problem = target
            return result

        return await self._run("delete", operation)

    async def solve_again(self, problem_id: uuid.UUID) -> OperationResult:
        async def operation():
            target = self.get(problem_id)
            if target is None:
                return OperationResult.failure(
                    ResourceNotFoundException(detail="Original problem not found.")
                )
            now = self.now()
            revision = ProblemRecord(
                id=uuid.uuid4(),
                owner_id=self.owner_id,
                problem_text=target.problem_text,
                difficulty=target.difficulty,
                platform=target.platform,
                tags=list(target.tags),
                last_solved_at=now,
                created_at=now,
                solve_count=1,
                is_revision=True,
                original_problem_id=target.id,
            )

            def mutate(problems):
                updated = [
                    p.model_copy(update={"solve_count": p.solve_count + 1})
                    if p.id == target.id
                    else p
                    for p in problems
                ]
                return [revision] + updated

            async def write(db):
                row = await create_revision_in_db(db, target.id, revision)
                return [ProblemRecord.model_validate(row)]

            return await self._apply_optimistically(mutate, write, revision.id)

        return await self._run("solve_again", operation)

    async def undo_revision(self, revision_id: uuid.UUID) -> OperationResult:
        async def operation():
            revision = self.get(revision_id)
            try:
                if revision is None:
                    raise ResourceNotFoundException(detail="Revision to undo not found.")
                ensure_undoable(revision, self.now())
            except (ResourceNotFoundException, WindowExpiredException) as e:
                return OperationResult.failure(e)
            original_id = revision.original_problem_id

            def mutate(problems):
                return [
                    p.model_copy(update={"solve_count": max(p.solve_count - 1, 0)})
                    if p.id == original_id
                    else p
                    for p in problems
                    if p.id != revision_id
                ]

            async def write(db):
                await undo_revision_in_db(db, self.owner_id, revision_id, original_id)
                return []

            result = await self._apply_optimistically(mutate, write)
            if result.success:
                result.problem = revision
            return result

        return await self._run("undo_revision", operation)

    async def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Registers a listener and returns the function that removes it."""
        await self.ensure_loaded()
        self._listeners.append(listener)
        if not await self._notify(listener, self.list()):
            self._remove_listener(listener)

        def unsubscribe() -> None:
            self._remove_listener(listener)

        return unsubscribe

    @property
    def has_listeners(self) -> bool:
        return bool(self._listeners)

    def close(self) -> None:
        store_logger.debug(f"Closing store for owner {self.owner_id} ({len(self._listeners)} listeners)")
        self._listeners.clear()

    async def _run(self, name: str, operation) -> OperationResult:
        await self.ensure_loaded()
        async with self._lock:
            result = await operation()
        if result.success:
            await self._publish()
        else:
            store_logger.warning(
                f"{name} failed for owner {self.owner_id}: {result.error_kind.value} - {result.message}"
            )
        return result

    async def _apply_optimistically(
        self,
        mutate: Callable[[List[ProblemRecord]], List[ProblemRecord]],
        write: Callable[[Any], Awaitable[List[ProblemRecord]]],
        result_id: Optional[uuid.UUID] = None,
    ) -> OperationResult:
        """Snapshot, apply the tentative change, write, and restore the snapshot on failure."""
        snapshot = self._problems
        self._problems = mutate(list(snapshot))
        try:
            async with self._session_factory() as db:
                committed = await write(db)
        except AppException as e:
            self._problems = snapshot
            return OperationResult.failure(e)
        self._reconcile(committed)
        return OperationResult.ok(self.get(result_id) if result_id else None)

    def _replace(self, records: Iterable[ProblemRecord]) -> None:
        by_id: Dict[uuid.UUID, ProblemRecord] = {}
        for record in records:
            by_id[record.id] = record
        self._problems = _ordered(by_id.values())
        self.loaded = True

    def _reconcile(self, committed: List[ProblemRecord]) -> None:
        if not committed:
            return
        by_id = {p.id: p for p in self._problems}
        for record in committed:
            by_id[record.id] = record
        self._problems = _ordered(by_id.values())

    def _remove_listener(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    async def _notify(self, listener: Listener, problems: List[ProblemRecord]) -> bool:
        try:
            outcome = listener(problems)
            if inspect.isawaitable(outcome):
                await outcome
            return True
        except Exception as e:
            store_logger.error(f"Dropping listener for owner {self.owner_id}: {str(e)}")
            return False

    async def _publish(self) -> None:
        problems = self.list()
        failed = [
            listener
            for listener in list(self._listeners)
            if not await self._notify(listener, problems)
        ]
        for listener in failed:
            self._remove_listener(listener)


class StoreRegistry:
    """
    Keeps one ProblemStore per signed-in owner.

    A store that nobody has touched for ``idle_timeout`` seconds and that has no
    live feed listening is released, so sessions that simply expire do not pin
    their problem lists in memory.
    """

    def __init__(
        self,
        session_factory=async_session_maker,
        clock=utcnow,
        idle_timeout: Optional[int] = None,
    ):
        self._session_factory = session_factory
        self._clock = clock
        self.idle_timeout = timedelta(
            seconds=Config.STORE_IDLE_TIMEOUT if idle_timeout is None else idle_timeout
        )
        self._stores: Dict[uuid.UUID, ProblemStore] = {}
        self._last_seen: Dict[uuid.UUID, datetime] = {}

    def get(self, owner_id: uuid.UUID) -> ProblemStore:
        now = self._clock()
        self.evict_idle(now)
        store = self._stores.get(owner_id)
        if store is None:
            store = ProblemStore(owner_id, self._session_factory, self._clock)
            self._stores[owner_id] = store
            store_logger.info(f"Activated problem store for owner {owner_id}")
        self._last_seen[owner_id] = now
        return store

    def evict_idle(self, now=None) -> int:
        now = now or self._clock()
        idle = [
            owner_id
            for owner_id, store in self._stores.items()
            if not store.has_listeners and now - self._last_seen[owner_id] > self.idle_timeout
        ]
        for owner_id in idle:
            self.release(owner_id)
        return len(idle)

    def release(self, owner_id: uuid.UUID) -> None:
        store = self._stores.pop(owner_id, None)
        self._last_seen.pop(owner_id, None)
        if store is not None:
            store.close()
            store_logger.info(f"Released problem store for owner {owner_id}")

    def clear(self) -> None:
        for owner_id in list(self._stores):
            self.release(owner_id)

    def __len__(self) -> int:
        return len(self._stores)


store_registry = StoreRegistry()


def get_store_registry() -> StoreRegistry:
    return store_registry


async def get_problem_store(
    user: UserBaseResponse = Depends(get_current_user),
    registry: StoreRegistry = Depends(get_store_registry),
) -> ProblemStore:
    store = registry.get(user.id)
    await store.ensure_loaded()
    return store

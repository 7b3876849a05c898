import uuid
from typing import List, Union

from fastapi import APIRouter, Body, Depends, WebSocket, WebSocketDisconnect, status

from revision_planner.business.services import (
    ProblemStore,
    StoreRegistry,
    get_problem_store,
    get_store_registry,
    get_user_from_websocket,
)
from revision_planner.business.services.read_model import (
    build_archive_response,
    build_detail_response,
    build_due_response,
    build_stats_response,
    to_response,
)
from revision_planner.config import logger
from revision_planner.data.repositories import RedisClient, get_redis_client
from revision_planner.data.schemas import (
    DayGroupResponse,
    DueScheduleResponse,
    ProblemCreate,
    ProblemDetailResponse,
    ProblemResponse,
    ProblemStatsResponse,
)
from revision_planner.errors import DatabaseException, ResourceNotFoundException
from revision_planner.presentation.websocket import manager

problem_logger = logger.getChild("problem")
problem_router = APIRouter(prefix="/problems", tags=["problems"])


@problem_router.get(
    "/",
    response_model=List[ProblemResponse],
    summary="List problems",
    description="Lists the current user's problems, most recently solved first.",
)
async def list_problems(store: ProblemStore = Depends(get_problem_store)):
    if store.error and not store.loaded:
        raise DatabaseException(detail=store.error)
    now = store.now()
    return [to_response(p, now) for p in store.list()]


@problem_router.post(
    "/",
    response_model=ProblemResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add a problem",
    description="Logs a solved problem. The body is either a plain description string or a structured object.",
)
async def add_problem(
    payload: Union[ProblemCreate, str] = Body(...),
    store: ProblemStore = Depends(get_problem_store),
):
    problem_logger.info(f"Adding problem for owner {store.owner_id}")
    result = await store.add(payload)
    result.raise_for_error()
    return to_response(result.problem, store.now())


@problem_router.get(
    "/due",
    response_model=DueScheduleResponse,
    summary="Today's revision schedule",
    description="Originals whose days since last solved match a revision interval and that were not revised today.",
)
async def due_problems(store: ProblemStore = Depends(get_problem_store)):
    return build_due_response(store.list(), store.now())


@problem_router.get(
    "/stats",
    response_model=ProblemStatsResponse,
    summary="Problem statistics",
)
async def problem_stats(store: ProblemStore = Depends(get_problem_store)):
    return build_stats_response(store.list(), store.now())


@problem_router.get(
    "/archive",
    response_model=List[DayGroupResponse],
    summary="Problem archive",
    description="Problems grouped by the calendar day they were last solved, newest day first.",
)
async def problem_archive(store: ProblemStore = Depends(get_problem_store)):
    return build_archive_response(store.list(), store.now())


@problem_router.post(
    "/refresh",
    response_model=List[ProblemResponse],
    summary="Reload problems",
    description="Re-reads the current user's problems from the database.",
)
async def refresh_problems(store: ProblemStore = Depends(get_problem_store)):
    result = await store.refresh()
    result.raise_for_error()
    now = store.now()
    return [to_response(p, now) for p in store.list()]


@problem_router.websocket("/ws")
async def problem_feed(
    websocket: WebSocket,
    redis_client: RedisClient = Depends(get_redis_client),
    registry: StoreRegistry = Depends(get_store_registry),
):
    """
    WebSocket endpoint streaming problem snapshots to the signed-in user.
    Sending "refresh" re-reads the problems from the database.
    """
    user = await get_user_from_websocket(websocket, redis_client)
    if user is None:
        problem_logger.warning("Rejected problem feed connection without a valid session")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    user_id = str(user.id)
    store = registry.get(user.id)
    await manager.connect(websocket, store)
    try:
        while True:
            message = await websocket.receive_text()
            if message == "refresh":
                await store.refresh()
    except WebSocketDisconnect:
        problem_logger.info(f"WebSocket disconnected for user ID: {user_id}")
    finally:
        manager.disconnect(websocket, user_id)


@problem_router.get(
    "/{problem_id}",
    response_model=ProblemDetailResponse,
    summary="Get a problem",
    description="Returns a problem with its revisions and next due date.",
)
async def get_problem(
    problem_id: uuid.UUID,
    store: ProblemStore = Depends(get_problem_store),
):
    record = store.get(problem_id)
    if record is None:
        raise ResourceNotFoundException(detail="Problem not found.")
    return build_detail_response(record, store.list(), store.now())


@problem_router.delete(
    "/{problem_id}",
    summary="Delete a problem",
    description="Deletes a single problem record. Linked revisions or originals are kept.",
)
async def delete_problem(
    problem_id: uuid.UUID,
    store: ProblemStore = Depends(get_problem_store),
):
    problem_logger.info(f"Deleting problem ID: {problem_id}")
    result = await store.delete(problem_id)
    result.raise_for_error()
    return {"message": f"Problem {problem_id} deleted"}


@problem_router.post(
    "/{problem_id}/solve-again",
    response_model=ProblemResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Solve a problem again",
    description="Creates a revision of the problem and increments its solve count atomically.",
)
async def solve_again(
    problem_id: uuid.UUID,
    store: ProblemStore = Depends(get_problem_store),
):
    problem_logger.info(f"Solving problem ID {problem_id} again")
    result = await store.solve_again(problem_id)
    result.raise_for_error()
    return to_response(result.problem, store.now())


@problem_router.post(
    "/{problem_id}/undo",
    summary="Undo a revision",
    description="Removes a revision created within the last 5 minutes and decrements its original's solve count.",
)
async def undo_revision(
    problem_id: uuid.UUID,
    store: ProblemStore = Depends(get_problem_store),
):
    problem_logger.info(f"Undoing revision ID: {problem_id}")
    result = await store.undo_revision(problem_id)
    result.raise_for_error()
    return {"message": "Revision undone", "original_problem_id": str(result.problem.original_problem_id)}

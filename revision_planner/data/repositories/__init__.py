from .database import async_session_maker, get_session, init_db
from .problem import (
    create_problem_in_db,
    create_revision_in_db,
    delete_problem_from_db,
    list_problems_for_owner,
    undo_revision_in_db,
)
from .redis import RedisClient, redis_client
from .redis_dependency import get_redis_client
from .user_repository import get_user_by_email, get_user_by_id

__all__ = [
    "async_session_maker",
    "get_session",
    "init_db",
    "RedisClient",
    "redis_client",
    "get_redis_client",
    "get_user_by_id",
    "get_user_by_email",
    "list_problems_for_owner",
    "create_problem_in_db",
    "delete_problem_from_db",
    "create_revision_in_db",
    "undo_revision_in_db",
]

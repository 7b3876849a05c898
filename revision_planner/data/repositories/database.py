from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

from revision_planner.config import Config

# SQLite connections are bound to the event loop that opened them
engine_options = {"poolclass": NullPool} if Config.REVISION_DB_URL.startswith("sqlite") else {}

async_engine = create_async_engine(url=Config.REVISION_DB_URL, **engine_options)

async_session_maker = async_sessionmaker(
    bind=async_engine, class_=AsyncSession, expire_on_commit=False
)


async def init_db() -> None:
    """
    Initializes the revision planner database.
    """
    async with async_engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency to get an async session for the revision planner database.
    """
    async with async_session_maker() as session:
        yield session

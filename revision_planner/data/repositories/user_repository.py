import uuid
from typing import Optional, Union

from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from revision_planner.data.schemas import User


async def get_user_by_id(
    session: AsyncSession, user_id: Union[uuid.UUID, str]
) -> Optional[User]:
    if not isinstance(user_id, uuid.UUID):
        try:
            user_id = uuid.UUID(str(user_id))
        except ValueError:
            return None
    result = await session.exec(select(User).where(User.id == user_id))
    return result.first()


async def get_user_by_email(session: AsyncSession, email: str) -> Optional[User]:
    result = await session.exec(select(User).where(User.email == email.lower()))
    return result.first()

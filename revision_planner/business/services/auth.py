from typing import Optional

from fastapi import Depends
from pydantic import UUID4
from sqlalchemy import update
from sqlmodel.ext.asyncio.session import AsyncSession

from revision_planner.business.services.auth_util import generate_password_hash
from revision_planner.data.repositories import (
    get_session,
    get_user_by_email,
    get_user_by_id,
)
from revision_planner.data.schemas import AuthProvider, User, UserCreateModel
from revision_planner.utils.time import utcnow


class UserService:
    @staticmethod
    async def get_user_by_id(user_id: UUID4, session: AsyncSession) -> User | None:
        return await get_user_by_id(session, user_id)

    @staticmethod
    async def get_user_by_email(email: str, session: AsyncSession) -> User | None:
        return await get_user_by_email(session, email)

    @staticmethod
    async def create_user(user_data: UserCreateModel, session: AsyncSession) -> User:
        user_data_dict = user_data.model_dump()
        password = user_data_dict.pop("password")

        new_user = User(
            email=user_data_dict["email"].lower(),
            display_name=user_data_dict.get("display_name"),
            password_hash=generate_password_hash(password),
            auth_provider=AuthProvider.PASSWORD,
        )

        session.add(new_user)
        await session.commit()
        await session.refresh(new_user)
        return new_user

    @staticmethod
    async def get_or_create_federated_user(
        email: str, display_name: Optional[str], session: AsyncSession
    ) -> User:
        """Signs in an existing account by email, or creates one without a password."""
        user = await get_user_by_email(session, email)
        if user:
            return user

        new_user = User(
            email=email.lower(),
            display_name=display_name,
            password_hash=None,
            auth_provider=AuthProvider.GOOGLE,
        )
        session.add(new_user)
        await session.commit()
        await session.refresh(new_user)
        return new_user

    @staticmethod
    async def update_refresh_token(
        user_id: UUID4, refresh_token: Optional[str], session: AsyncSession
    ) -> None:
        stmt = (
            update(User)
            .where(User.id == user_id)
            .values(refresh_token=refresh_token, updated_at=utcnow())
            .execution_options(synchronize_session="fetch")
        )
        await session.execute(stmt)
        await session.commit()

    @staticmethod
    async def update_password(user_id: UUID4, new_password: str, session: AsyncSession) -> None:
        stmt = (
            update(User)
            .where(User.id == user_id)
            .values(password_hash=generate_password_hash(new_password), updated_at=utcnow())
            .execution_options(synchronize_session="fetch")
        )
        await session.execute(stmt)
        await session.commit()


def get_user_service(session: AsyncSession = Depends(get_session)) -> UserService:
    return UserService()

from typing import Optional

from sqlalchemy import Column, Enum, String
from sqlmodel import Field

from revision_planner.data.schemas.base import BaseModel
from revision_planner.data.schemas.enums import AuthProvider


class User(BaseModel, table=True):
    __tablename__ = "users"

    email: str = Field(sa_column=Column(String(255), unique=True, index=True, nullable=False))
    display_name: Optional[str] = Field(default=None, sa_column=Column(String(100), nullable=True))
    password_hash: Optional[str] = Field(default=None, exclude=True)
    auth_provider: AuthProvider = Field(
        default=AuthProvider.PASSWORD,
        sa_column=Column(Enum(AuthProvider), nullable=False, default=AuthProvider.PASSWORD),
    )
    refresh_token: Optional[str] = Field(
        default=None, sa_column=Column(String(500), nullable=True, default=None)
    )

    def __repr__(self):
        return f"<User {self.email} ({self.auth_provider.value})>"

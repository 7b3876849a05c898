import uuid
from typing import Optional

from pydantic import BaseModel, EmailStr, Field

from revision_planner.data.schemas.enums import AuthProvider


class UserCreateModel(BaseModel):
    email: EmailStr = Field(..., examples=["coder@example.com"])
    password: str = Field(
        ...,
        min_length=6,
        max_length=64,
        examples=["Str0ngP@ss!"],
        description="Password should be at least 6 characters",
    )
    display_name: Optional[str] = Field(None, max_length=100, examples=["Ada"])


class UserLoginModel(BaseModel):
    email: EmailStr = Field(..., examples=["coder@example.com"])
    password: str = Field(..., min_length=1, max_length=64)


class GoogleSignInModel(BaseModel):
    id_token: str = Field(..., min_length=1, description="Google ID token from the client")


class PasswordResetRequest(BaseModel):
    email: EmailStr


class PasswordResetConfirm(BaseModel):
    token: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=6, max_length=64)


class UserBaseResponse(BaseModel):
    id: uuid.UUID
    email: str

    model_config = {"from_attributes": True}


class UserResponseModel(UserBaseResponse):
    display_name: Optional[str] = None
    auth_provider: AuthProvider

    model_config = {"from_attributes": True}

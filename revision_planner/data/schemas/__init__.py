from .base import BaseModel
from .enums import AuthProvider, Difficulty, ErrorKind
from .user import User
from .problem import (
    DayGroupResponse,
    DueScheduleResponse,
    DueTierResponse,
    Problem,
    ProblemCreate,
    ProblemDetailResponse,
    ProblemRecord,
    ProblemResponse,
    ProblemStatsResponse,
    SnapshotMessage,
)
from .auth import (
    GoogleSignInModel,
    PasswordResetConfirm,
    PasswordResetRequest,
    UserBaseResponse,
    UserCreateModel,
    UserLoginModel,
    UserResponseModel,
)

__all__ = [
    "BaseModel",
    "AuthProvider",
    "Difficulty",
    "ErrorKind",
    "User",
    "Problem",
    "ProblemCreate",
    "ProblemRecord",
    "ProblemResponse",
    "ProblemDetailResponse",
    "DueTierResponse",
    "DueScheduleResponse",
    "ProblemStatsResponse",
    "DayGroupResponse",
    "SnapshotMessage",
    "UserCreateModel",
    "UserLoginModel",
    "GoogleSignInModel",
    "PasswordResetRequest",
    "PasswordResetConfirm",
    "UserBaseResponse",
    "UserResponseModel",
]

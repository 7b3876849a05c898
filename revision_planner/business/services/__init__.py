from .auth import UserService, get_user_service
from .auth_dependency import (
    AccessTokenFromCookie,
    RefreshTokenFromCookie,
    get_current_user,
    get_user_from_websocket,
)
from .auth_util import (
    PASSWORD_RESET_PURPOSE,
    create_access_token,
    create_password_reset_token,
    create_refresh_token,
    decode_token,
    generate_password_hash,
    verify_password,
)
from .federated import FederatedIdentity, GoogleTokenVerifier, get_google_verifier
from .mailer import PasswordResetMailer, get_mailer
from .problem_store import (
    OperationResult,
    ProblemStore,
    StoreRegistry,
    get_problem_store,
    get_store_registry,
    normalize_problem_input,
    store_registry,
)

__all__ = [
    "UserService",
    "get_user_service",
    "AccessTokenFromCookie",
    "RefreshTokenFromCookie",
    "get_current_user",
    "get_user_from_websocket",
    "PASSWORD_RESET_PURPOSE",
    "create_access_token",
    "create_refresh_token",
    "create_password_reset_token",
    "decode_token",
    "generate_password_hash",
    "verify_password",
    "FederatedIdentity",
    "GoogleTokenVerifier",
    "get_google_verifier",
    "PasswordResetMailer",
    "get_mailer",
    "OperationResult",
    "ProblemStore",
    "StoreRegistry",
    "get_problem_store",
    "get_store_registry",
    "normalize_problem_input",
    "store_registry",
]

import asyncio
import uuid

from fastapi import APIRouter, Depends, Response, status
from fastapi.responses import JSONResponse
from sqlmodel.ext.asyncio.session import AsyncSession

from revision_planner.business.services import (
    PASSWORD_RESET_PURPOSE,
    AccessTokenFromCookie,
    GoogleTokenVerifier,
    PasswordResetMailer,
    RefreshTokenFromCookie,
    StoreRegistry,
    UserService,
    create_access_token,
    create_password_reset_token,
    create_refresh_token,
    decode_token,
    get_google_verifier,
    get_mailer,
    get_store_registry,
    get_user_service,
    verify_password,
)
from revision_planner.config import Config, logger
from revision_planner.data.repositories import RedisClient, get_redis_client, get_session
from revision_planner.data.schemas import (
    GoogleSignInModel,
    PasswordResetConfirm,
    PasswordResetRequest,
    UserCreateModel,
    UserLoginModel,
    UserResponseModel,
)
from revision_planner.errors import (
    AuthenticationException,
    AuthorizationException,
    ResourceNotFoundException,
)

auth_logger = logger.getChild("auth")
auth_router = APIRouter(prefix="/auth", tags=["auth"])


@auth_router.post(
    "/register",
    response_model=UserResponseModel,
    status_code=status.HTTP_201_CREATED,
    summary="Register a new user",
    description="Creates a new account from email and password, generates access and refresh tokens, and sets them as HTTP-only cookies.",
)
async def create_user(
    user_data: UserCreateModel,
    response: Response,
    user_service: UserService = Depends(get_user_service),
    session: AsyncSession = Depends(get_session),
):
    auth_logger.info(f"Registration attempt for email: {user_data.email}")
    user_exists = await user_service.get_user_by_email(user_data.email, session)
    if user_exists:
        auth_logger.warning(f"Email already registered: {user_data.email}")
        raise AuthorizationException(detail="An account with this email already exists.")

    new_user = await user_service.create_user(user_data, session)
    await issue_session(response, new_user, user_service, session)
    auth_logger.info(f"User registered: {new_user.email} (ID: {new_user.id})")
    return new_user


@auth_router.post(
    "/login",
    response_model=UserResponseModel,
    summary="Log in a user",
    description="Authenticates a user by email and password and sets access and refresh tokens as HTTP-only cookies.",
)
async def login(
    login_data: UserLoginModel,
    response: Response,
    user_service: UserService = Depends(get_user_service),
    session: AsyncSession = Depends(get_session),
):
    auth_logger.info(f"Login attempt for email: {login_data.email}")
    user = await user_service.get_user_by_email(login_data.email, session)
    if not user:
        auth_logger.warning(f"Unknown email: {login_data.email}")
        raise ResourceNotFoundException(detail="No user with this email found.")
    if not verify_password(login_data.password, user.password_hash):
        auth_logger.warning(f"Incorrect password for email: {login_data.email}")
        raise AuthenticationException(detail="Incorrect password.")

    await issue_session(response, user, user_service, session)
    auth_logger.info(f"User logged in: {user.email} (ID: {user.id})")
    return user


@auth_router.post(
    "/google",
    response_model=UserResponseModel,
    summary="Sign in with Google",
    description="Verifies a Google ID token, creates the account on first sign-in, and sets session cookies.",
)
async def google_sign_in(
    sign_in: GoogleSignInModel,
    response: Response,
    verifier: GoogleTokenVerifier = Depends(get_google_verifier),
    user_service: UserService = Depends(get_user_service),
    session: AsyncSession = Depends(get_session),
):
    # JWKS lookups block on the network, so verification runs off the event loop
    identity = await asyncio.to_thread(verifier.verify, sign_in.id_token)
    auth_logger.info(f"Google sign-in for email: {identity.email}")
    user = await user_service.get_or_create_federated_user(
        identity.email, identity.display_name, session
    )
    await issue_session(response, user, user_service, session)
    return user


@auth_router.post(
    "/password-reset",
    status_code=status.HTTP_202_ACCEPTED,
    summary="Request a password reset",
    description="Emails a single-use password reset link to the account owner.",
)
async def request_password_reset(
    reset_request: PasswordResetRequest,
    user_service: UserService = Depends(get_user_service),
    mailer: PasswordResetMailer = Depends(get_mailer),
    session: AsyncSession = Depends(get_session),
):
    user = await user_service.get_user_by_email(reset_request.email, session)
    if not user:
        raise ResourceNotFoundException(detail="No user with this email found.")

    token = create_password_reset_token({"id": str(user.id), "email": user.email})
    await mailer.send_reset_email(user.email, token)
    auth_logger.info(f"Password reset requested for user ID: {user.id}")
    return {"message": "Password reset email sent"}


@auth_router.post(
    "/password-reset/confirm",
    summary="Set a new password",
    description="Sets a new password using a password reset token. Each token works once.",
)
async def confirm_password_reset(
    confirm: PasswordResetConfirm,
    user_service: UserService = Depends(get_user_service),
    redis_client: RedisClient = Depends(get_redis_client),
    session: AsyncSession = Depends(get_session),
):
    token_data = decode_token(confirm.token)
    if not token_data or token_data.get("purpose") != PASSWORD_RESET_PURPOSE:
        raise AuthorizationException(detail="Invalid or expired reset token")
    if await redis_client.token_in_blocklist(token_data["jti"]):
        raise AuthorizationException(detail="Reset token has already been used")

    user = await user_service.get_user_by_id(token_data["user"]["id"], session)
    if not user:
        raise AuthenticationException(detail="Invalid credentials")

    await user_service.update_password(user.id, confirm.new_password, session)
    await redis_client.add_jti_to_blocklist(
        token_data["jti"], expiry=Config.PASSWORD_RESET_TOKEN_EXPIRY
    )
    auth_logger.info(f"Password reset completed for user ID: {user.id}")
    return {"message": "Password updated"}


@auth_router.get(
    "/refresh",
    summary="Refresh JWT tokens",
    description="Refreshes access and refresh tokens using the refresh token cookie, adding the old token to a Redis blocklist.",
    response_model=None,
)
async def update_tokens(
    response: Response,
    token_details: dict = Depends(RefreshTokenFromCookie()),
    user_service: UserService = Depends(get_user_service),
    redis_client: RedisClient = Depends(get_redis_client),
    session: AsyncSession = Depends(get_session),
):
    user_id = token_details["user"]["id"]
    auth_logger.info(f"Token refresh attempt for user ID: {user_id}")
    user = await user_service.get_user_by_id(user_id, session)
    if not user:
        auth_logger.warning(f"User not found: ID {user_id}")
        raise AuthenticationException(detail="Invalid credentials")

    await redis_client.add_jti_to_blocklist(token_details["jti"])
    await issue_session(response, user, user_service, session)
    auth_logger.info(f"Tokens refreshed for user: {user.email} (ID: {user.id})")
    return {"message": "Tokens refreshed"}


@auth_router.get(
    "/me",
    response_model=UserResponseModel,
    summary="Get current user",
    description="Returns the data of the currently authenticated user based on the access token.",
)
async def get_current_user(
    user_service: UserService = Depends(get_user_service),
    session: AsyncSession = Depends(get_session),
    token_data: dict = Depends(AccessTokenFromCookie()),
):
    user_id = token_data["user"]["id"]
    auth_logger.debug(f"Fetching data for user ID: {user_id}")
    user = await user_service.get_user_by_id(user_id, session)
    if not user:
        auth_logger.warning(f"User not found: ID {user_id}")
        raise AuthenticationException(detail="User not found")
    return user


@auth_router.get(
    "/logout",
    summary="Log out a user",
    description="Adds access and refresh tokens to a Redis blocklist, deletes the cookies and releases the user's problem store.",
    response_model=None,
)
async def revoke_token(
    refresh_token_details: dict = Depends(RefreshTokenFromCookie()),
    access_token_details: dict = Depends(AccessTokenFromCookie()),
    redis_client: RedisClient = Depends(get_redis_client),
    registry: StoreRegistry = Depends(get_store_registry),
):
    user_id = refresh_token_details["user"]["id"]
    auth_logger.info(f"Logout attempt for user ID: {user_id}")
    await redis_client.add_jti_to_blocklist(refresh_token_details["jti"])
    await redis_client.add_jti_to_blocklist(access_token_details["jti"])
    registry.release(uuid.UUID(user_id))
    response = JSONResponse(content={"message": "Logged out successfully"})
    response.delete_cookie(
        key="access_token", httponly=True, secure=Config.COOKIE_SECURE, samesite=cookie_samesite()
    )
    response.delete_cookie(
        key="refresh_token", httponly=True, secure=Config.COOKIE_SECURE, samesite=cookie_samesite()
    )
    auth_logger.info(f"User logged out: ID {user_id}")
    return response


def generate_tokens_for_user(user) -> tuple[str, str]:
    access_token = create_access_token({"id": str(user.id), "email": user.email})
    refresh_token = create_refresh_token({"id": str(user.id), "email": user.email})
    return access_token, refresh_token


async def issue_session(response: Response, user, user_service: UserService, session: AsyncSession) -> None:
    access_token, refresh_token = generate_tokens_for_user(user)
    await user_service.update_refresh_token(user.id, refresh_token, session)
    set_auth_cookies(response, access_token, refresh_token)


def cookie_samesite() -> str:
    return "none" if Config.COOKIE_SECURE else "lax"


def set_auth_cookies(response: Response, access_token: str, refresh_token: str) -> None:
    response.set_cookie(
        key="access_token",
        value=access_token,
        max_age=Config.JWT_ACCESS_TOKEN_EXPIRY,
        httponly=True,
        secure=Config.COOKIE_SECURE,
        samesite=cookie_samesite(),
    )
    response.set_cookie(
        key="refresh_token",
        value=refresh_token,
        max_age=Config.JWT_REFRESH_TOKEN_EXPIRY,
        httponly=True,
        secure=Config.COOKIE_SECURE,
        samesite=cookie_samesite(),
    )

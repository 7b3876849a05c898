from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from starlette.websockets import WebSocket

from revision_planner.business.services.auth_util import decode_token
from revision_planner.data.repositories import RedisClient, get_redis_client
from revision_planner.data.schemas import UserBaseResponse


def is_session_token(token_data: Optional[dict], refresh: bool = False) -> bool:
    """Only access or refresh tokens open a session; purpose-bound tokens never do."""
    if not token_data or "purpose" in token_data:
        return False
    return token_data.get("is_refresh") is refresh


class TokenFromCookie:
    def __init__(self, cookie_name: str = "access_token", refresh: bool = False):
        self.cookie_name = cookie_name
        self.refresh = refresh

    async def __call__(
        self, request: Request, redis_client: RedisClient = Depends(get_redis_client)
    ) -> dict:
        token = request.cookies.get(self.cookie_name)
        if not token:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail=f"{self.cookie_name} not found in cookies"
            )

        token_data = decode_token(token)
        if not is_session_token(token_data, self.refresh):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Invalid or expired token"
            )

        if await redis_client.token_in_blocklist(token_data["jti"]):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Token has been revoked"
            )

        return token_data


class AccessTokenFromCookie(TokenFromCookie):
    def __init__(self):
        super().__init__(cookie_name="access_token", refresh=False)


class RefreshTokenFromCookie(TokenFromCookie):
    def __init__(self):
        super().__init__(cookie_name="refresh_token", refresh=True)


def get_current_user(token_data: dict = Depends(AccessTokenFromCookie())) -> UserBaseResponse:
    try:
        user = UserBaseResponse(**token_data["user"])
        return user
    except Exception:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate user"
        )


async def get_user_from_websocket(
    websocket: WebSocket, redis_client: RedisClient
) -> Optional[UserBaseResponse]:
    """Resolves the signed-in user of a WebSocket handshake from its access token cookie."""
    token = websocket.cookies.get("access_token")
    if not token:
        return None
    token_data = decode_token(token)
    if not is_session_token(token_data):
        return None
    if await redis_client.token_in_blocklist(token_data["jti"]):
        return None
    try:
        return UserBaseResponse(**token_data["user"])
    except Exception:
        return None

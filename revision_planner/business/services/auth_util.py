import uuid
from datetime import timedelta
from typing import Any, Optional

import jwt
from passlib.context import CryptContext

from revision_planner.config import Config
from revision_planner.utils.time import utcnow

passwd_context = CryptContext(schemes=["bcrypt"])

PASSWORD_RESET_PURPOSE = "password_reset"


def generate_password_hash(password: str) -> str:
    return passwd_context.hash(password)


def verify_password(password: str, password_hash: Optional[str]) -> bool:
    if not password_hash:
        return False
    return passwd_context.verify(password, password_hash)


def create_access_token(
    user_data: dict, expiry: timedelta = timedelta(seconds=Config.JWT_ACCESS_TOKEN_EXPIRY)
):
    payload = {
        "user": user_data,
        "exp": utcnow() + expiry,
        "jti": str(uuid.uuid4()),
        "is_refresh": False,
    }

    return encode_token(payload)


def create_refresh_token(
    user_data: dict, expiry: timedelta = timedelta(seconds=Config.JWT_REFRESH_TOKEN_EXPIRY)
):
    payload = {
        "user": user_data,
        "exp": utcnow() + expiry,
        "jti": str(uuid.uuid4()),
        "is_refresh": True,
    }

    return encode_token(payload)


def create_password_reset_token(
    user_data: dict,
    expiry: timedelta = timedelta(seconds=Config.PASSWORD_RESET_TOKEN_EXPIRY),
):
    payload = {
        "user": user_data,
        "exp": utcnow() + expiry,
        "jti": str(uuid.uuid4()),
        "purpose": PASSWORD_RESET_PURPOSE,
    }

    return encode_token(payload)


def encode_token(payload):
    return jwt.encode(
        payload=payload, key=Config.JWT_SECRET, algorithm=Config.JWT_ALGORITHM
    )


def decode_token(token: str) -> Any | None:
    try:
        token_data = jwt.decode(
            jwt=token, key=Config.JWT_SECRET, algorithms=[Config.JWT_ALGORITHM]
        )
        return token_data

    except jwt.PyJWTError as _:
        return None

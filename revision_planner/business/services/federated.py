from functools import lru_cache
from typing import Optional

import jwt
from pydantic import BaseModel

from revision_planner.config import Config, logger
from revision_planner.errors import AuthenticationException

federated_logger = logger.getChild("federated")

GOOGLE_ISSUERS = ("accounts.google.com", "https://accounts.google.com")


class FederatedIdentity(BaseModel):
    subject: str
    email: str
    display_name: Optional[str] = None


class GoogleTokenVerifier:
    """Verifies Google ID tokens against Google's published signing keys."""

    def __init__(self, client_id: str = None, jwks_url: str = None):
        self.client_id = client_id or Config.GOOGLE_CLIENT_ID
        self.jwks_client = jwt.PyJWKClient(jwks_url or Config.GOOGLE_JWKS_URL)

    def verify(self, id_token: str) -> FederatedIdentity:
        if not self.client_id:
            raise AuthenticationException(detail="Google sign-in is not configured")
        try:
            signing_key = self.jwks_client.get_signing_key_from_jwt(id_token)
            claims = jwt.decode(
                id_token,
                key=signing_key.key,
                algorithms=["RS256"],
                audience=self.client_id,
            )
        except jwt.PyJWTError as e:
            federated_logger.warning(f"Rejected Google ID token: {str(e)}")
            raise AuthenticationException(detail="Invalid Google credentials")

        if claims.get("iss") not in GOOGLE_ISSUERS:
            raise AuthenticationException(detail="Invalid Google credentials")
        if not claims.get("email") or not claims.get("email_verified", False):
            raise AuthenticationException(detail="Google account email is not verified")

        return FederatedIdentity(
            subject=claims["sub"],
            email=claims["email"].lower(),
            display_name=claims.get("name"),
        )


@lru_cache
def get_google_verifier() -> GoogleTokenVerifier:
    return GoogleTokenVerifier()

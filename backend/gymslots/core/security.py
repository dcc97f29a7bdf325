"""
Verify session tokens issued by the auth provider (HS256 JWT, Supabase-style claims).

Only identity comes from the token (sub, email, user_metadata.name/student_id).
Admin status is never read from it.
"""
import logging
import time
from dataclasses import dataclass

import jwt

from gymslots.config import settings
from gymslots.core.errors import AuthRequired, UpstreamUnavailable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TokenClaims:
    user_id: str
    email: str
    name: str | None = None
    student_id: str | None = None


def decode_token(token: str) -> TokenClaims:
    """Validate signature, expiry and audience; raise AuthRequired on any failure."""
    if not settings.auth_jwt_secret:
        logger.warning("AUTH_JWT_SECRET is not set; cannot verify session tokens")
        raise UpstreamUnavailable("Authentication is not configured.")
    try:
        payload = jwt.decode(
            token,
            settings.auth_jwt_secret,
            algorithms=[settings.auth_jwt_algorithm],
            audience=settings.auth_jwt_audience or None,
            options={"require": ["sub", "exp"]},
        )
    except jwt.ExpiredSignatureError:
        raise AuthRequired("Session expired. Please sign in again.")
    except jwt.PyJWTError as e:
        logger.debug("Rejected session token: %s", e)
        raise AuthRequired("Invalid session token.")
    email = payload.get("email") or ""
    if not email:
        raise AuthRequired("Session token has no email claim.")
    meta = payload.get("user_metadata") or {}
    return TokenClaims(
        user_id=str(payload["sub"]),
        email=email,
        name=meta.get("name") or None,
        student_id=meta.get("student_id") or None,
    )


def issue_token(
    user_id: str,
    email: str,
    name: str | None = None,
    student_id: str | None = None,
    expires_in: int = 3600,
) -> str:
    """Mint a token the way the auth provider does. Used for local development and tests."""
    now = int(time.time())
    claims = {
        "sub": user_id,
        "email": email,
        "aud": settings.auth_jwt_audience,
        "iat": now,
        "exp": now + expires_in,
        "user_metadata": {"name": name, "student_id": student_id},
    }
    token = jwt.encode(claims, settings.auth_jwt_secret, algorithm=settings.auth_jwt_algorithm)
    if isinstance(token, bytes):
        token = token.decode("utf-8")
    return token

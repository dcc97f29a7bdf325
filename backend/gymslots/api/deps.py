"""Request dependencies: database session and the authenticated caller."""
from fastapi import Depends, Header
from sqlalchemy.orm import Session

from gymslots.core.errors import AuthRequired
from gymslots.core.security import decode_token
from gymslots.db.session import get_db
from gymslots.models.user import User
from gymslots.services.user_service import ensure_admin, get_or_create_profile


def _bearer_token(authorization: str | None = Header(None)) -> str:
    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise AuthRequired()
    return token.strip()


def current_user(token: str = Depends(_bearer_token), db: Session = Depends(get_db)) -> User:
    claims = decode_token(token)
    return get_or_create_profile(
        db,
        claims.user_id,
        claims.email,
        name=claims.name,
        student_id=claims.student_id,
    )


def admin_user(user: User = Depends(current_user)) -> User:
    return ensure_admin(user)

"""
User profiles: local mirror of the auth provider's users.

The row is created from verified token claims on first sight. is_admin is only ever
read from this table; token metadata and client flags never grant admin.
"""
import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from gymslots.core.errors import Forbidden, NotFound
from gymslots.models.user import User

logger = logging.getLogger(__name__)


def ensure_admin(user: User | None) -> User:
    if user is None or not user.is_admin:
        raise Forbidden()
    return user


def get_user(db: Session, user_id: str) -> User:
    row = db.query(User).filter(User.id == user_id).first()
    if not row:
        raise NotFound("User not found.", user_id=user_id)
    return row


def get_or_create_profile(
    db: Session,
    user_id: str,
    email: str,
    name: str | None = None,
    student_id: str | None = None,
) -> User:
    """Return the profile for user_id, creating it (non-admin) if this is the first request."""
    row = db.query(User).filter(User.id == user_id).first()
    if row:
        return row
    row = User(
        id=user_id,
        email=email,
        name=name or email.split("@")[0].upper(),
        student_id=student_id,
        is_admin=False,
    )
    db.add(row)
    try:
        db.commit()
    except IntegrityError:
        # Concurrent first request for the same user already inserted it.
        db.rollback()
        return get_user(db, user_id)
    db.refresh(row)
    logger.info("Created profile for user %s", user_id)
    return row


def set_admin(db: Session, user_id: str, is_admin: bool) -> User:
    row = get_user(db, user_id)
    row.is_admin = is_admin
    db.commit()
    db.refresh(row)
    logger.info("User %s is_admin=%s", user_id, is_admin)
    return row


def user_to_dict(user: User | None) -> dict | None:
    if user is None:
        return None
    return {
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "student_id": user.student_id,
        "is_admin": user.is_admin,
        "created_at": user.created_at.isoformat() if user.created_at else None,
    }


def user_summary(user: User | None) -> dict | None:
    """Subset joined into bookings/feedback listings."""
    if user is None:
        return None
    return {"name": user.name, "email": user.email, "student_id": user.student_id}

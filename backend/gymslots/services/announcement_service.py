"""Announcement board: admin CRUD, plus the currently visible list for users."""
import logging
from datetime import datetime, timezone

from sqlalchemy import or_
from sqlalchemy.orm import Session

from gymslots.core.errors import InvalidRequest, NotFound
from gymslots.models.announcement import Announcement

logger = logging.getLogger(__name__)


def _as_utc(value: datetime | None) -> datetime | None:
    """Store and compare in UTC; naive values are taken as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _require_text(title: str, content: str) -> tuple[str, str]:
    title, content = (title or "").strip(), (content or "").strip()
    if not title or not content:
        raise InvalidRequest("title and content are required.")
    return title, content


def create_announcement(
    db: Session,
    title: str,
    content: str,
    expires_at: datetime | None = None,
    is_active: bool = True,
) -> Announcement:
    title, content = _require_text(title, content)
    row = Announcement(title=title, content=content, expires_at=_as_utc(expires_at), is_active=is_active)
    db.add(row)
    db.commit()
    db.refresh(row)
    logger.info("Announcement %s published (expires_at=%s)", row.id, row.expires_at)
    return row


def get_announcement(db: Session, announcement_id: int) -> Announcement:
    row = db.query(Announcement).filter(Announcement.id == announcement_id).first()
    if not row:
        raise NotFound("Announcement not found.", announcement_id=announcement_id)
    return row


def update_announcement(
    db: Session,
    announcement_id: int,
    title: str,
    content: str,
    expires_at: datetime | None,
    is_active: bool,
) -> Announcement:
    row = get_announcement(db, announcement_id)
    row.title, row.content = _require_text(title, content)
    row.expires_at = _as_utc(expires_at)
    row.is_active = is_active
    db.commit()
    db.refresh(row)
    logger.info("Announcement %s updated (active=%s)", announcement_id, is_active)
    return row


def delete_announcement(db: Session, announcement_id: int) -> None:
    row = get_announcement(db, announcement_id)
    db.delete(row)
    db.commit()
    logger.info("Announcement %s deleted", announcement_id)


def list_announcements(db: Session) -> list[Announcement]:
    return db.query(Announcement).order_by(Announcement.created_at.desc(), Announcement.id.desc()).all()


def list_active_announcements(db: Session, now: datetime | None = None) -> list[Announcement]:
    """Active and not expired (expires_at null or >= now), newest first."""
    now = _as_utc(now) or datetime.now(timezone.utc)
    return (
        db.query(Announcement)
        .filter(
            Announcement.is_active.is_(True),
            or_(Announcement.expires_at.is_(None), Announcement.expires_at >= now),
        )
        .order_by(Announcement.created_at.desc(), Announcement.id.desc())
        .all()
    )


def announcement_to_dict(a: Announcement) -> dict:
    return {
        "id": a.id,
        "title": a.title,
        "content": a.content,
        "expires_at": a.expires_at.isoformat() if a.expires_at else None,
        "is_active": a.is_active,
        "created_at": a.created_at.isoformat() if a.created_at else None,
    }

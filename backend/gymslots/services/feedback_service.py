"""
Feedback log: user submissions with an admin-settable triage status.
Status moves freely between new, reviewed and resolved.
"""
import logging

from sqlalchemy.orm import Session, joinedload

from gymslots.core.constants import FEEDBACK_NEW, FEEDBACK_RATING_MAX, FEEDBACK_RATING_MIN, FEEDBACK_STATUSES
from gymslots.core.errors import InvalidRequest, NotFound
from gymslots.models.feedback import Feedback
from gymslots.services.user_service import user_summary

logger = logging.getLogger(__name__)


def _validate_status(status: str) -> str:
    if status not in FEEDBACK_STATUSES:
        raise InvalidRequest(f"Unknown feedback status {status!r}.", statuses=list(FEEDBACK_STATUSES))
    return status


def submit_feedback(
    db: Session,
    user_id: str,
    name: str,
    email: str,
    subject: str,
    message: str,
    rating: int | None = None,
) -> Feedback:
    if rating is not None and not FEEDBACK_RATING_MIN <= rating <= FEEDBACK_RATING_MAX:
        raise InvalidRequest(f"rating must be between {FEEDBACK_RATING_MIN} and {FEEDBACK_RATING_MAX}.")
    if not subject.strip() or not message.strip():
        raise InvalidRequest("subject and message are required.")
    row = Feedback(
        user_id=user_id,
        name=name,
        email=email,
        subject=subject.strip(),
        message=message.strip(),
        rating=rating,
        status=FEEDBACK_NEW,
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    logger.info("Feedback %s submitted by user=%s", row.id, user_id)
    return row


def list_feedback(db: Session, status: str | None = None) -> list[Feedback]:
    """Admin: all feedback newest first (optionally one status), with the submitter's profile."""
    q = db.query(Feedback).options(joinedload(Feedback.user))
    if status is not None:
        q = q.filter(Feedback.status == _validate_status(status))
    return q.order_by(Feedback.created_at.desc(), Feedback.id.desc()).all()


def update_feedback_status(db: Session, feedback_id: int, status: str) -> Feedback:
    _validate_status(status)
    row = db.query(Feedback).filter(Feedback.id == feedback_id).first()
    if not row:
        raise NotFound("Feedback not found.", feedback_id=feedback_id)
    previous = row.status
    row.status = status
    db.commit()
    db.refresh(row)
    logger.info("Feedback %s status %s -> %s", feedback_id, previous, status)
    return row


def feedback_to_dict(f: Feedback, with_user: bool = False) -> dict:
    out = {
        "id": f.id,
        "user_id": f.user_id,
        "name": f.name,
        "email": f.email,
        "subject": f.subject,
        "message": f.message,
        "rating": f.rating,
        "status": f.status,
        "created_at": f.created_at.isoformat() if f.created_at else None,
    }
    if with_user:
        out["user"] = user_summary(f.user)
    return out

"""Feedback submission. Name and email default to the caller's profile at submission time."""
from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from gymslots.api.deps import current_user
from gymslots.db.session import get_db
from gymslots.models.user import User
from gymslots.services.feedback_service import feedback_to_dict, submit_feedback

router = APIRouter()


class FeedbackBody(BaseModel):
    subject: str = Field(..., min_length=1, max_length=255)
    message: str = Field(..., min_length=1, max_length=5000)
    rating: int | None = Field(default=None, ge=1, le=5)
    name: str | None = Field(default=None, max_length=255)
    email: str | None = Field(default=None, max_length=255)


@router.post("", status_code=201)
def send_feedback(body: FeedbackBody, db: Session = Depends(get_db), user: User = Depends(current_user)):
    row = submit_feedback(
        db,
        user.id,
        name=body.name or user.name or user.email,
        email=body.email or user.email,
        subject=body.subject,
        message=body.message,
        rating=body.rating,
    )
    return feedback_to_dict(row)

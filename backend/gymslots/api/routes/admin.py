"""
Admin API: slot availability, rosters, feedback triage, announcements, admin grants.

Every route requires a caller whose users.is_admin is true. Per-user booking limits do
not apply here; slot changes go through the same slot registry as user flows.
"""
import logging
from datetime import date, datetime

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from gymslots.api.deps import admin_user
from gymslots.core.constants import FEEDBACK_STATUSES
from gymslots.db.session import get_db
from gymslots.models.user import User
from gymslots.services.announcement_service import (
    announcement_to_dict,
    create_announcement,
    delete_announcement,
    list_announcements,
    update_announcement,
)
from gymslots.services.booking_service import (
    booking_to_dict,
    list_all_bookings,
    list_bookings_for_slot,
    list_bookings_for_slot_ids,
    list_bookings_for_slot_label,
)
from gymslots.services.feedback_service import feedback_to_dict, list_feedback, update_feedback_status
from gymslots.services.slot_service import (
    ensure_slots_exist,
    get_slot,
    slot_to_dict,
    toggle_blocked,
    toggle_blocked_by_label,
    update_slot,
    upsert_slot,
)
from gymslots.services.user_service import set_admin, user_to_dict

router = APIRouter()
logger = logging.getLogger(__name__)


# --- Slots ---


class EnsureSlotsBody(BaseModel):
    start: date
    end: date
    capacity: int | None = Field(default=None, ge=1)


class UpdateSlotBody(BaseModel):
    capacity: int | None = Field(default=None, ge=1)
    is_blocked: bool | None = None


class ToggleByLabelBody(BaseModel):
    slot_date: date = Field(..., alias="date")
    time_slot: str = Field(..., min_length=1, max_length=32)


class UpsertSlotBody(ToggleByLabelBody):
    capacity: int | None = Field(default=None, ge=1)
    is_blocked: bool | None = None


@router.put("/slots")
def put_slot(body: UpsertSlotBody, db: Session = Depends(get_db), admin: User = Depends(admin_user)):
    """Create the slot for (date, time_slot) or update it; omitted fields keep their value."""
    slot = upsert_slot(db, body.slot_date, body.time_slot, admin, capacity=body.capacity, is_blocked=body.is_blocked)
    return slot_to_dict(slot)


@router.get("/slots/roster")
def slot_roster(
    slot_date: date = Query(..., alias="date"),
    time_slot: str = Query(...),
    db: Session = Depends(get_db),
    admin: User = Depends(admin_user),
):
    """Who is booked into (date, time_slot), oldest first."""
    rows = list_bookings_for_slot_label(db, slot_date, time_slot)
    return {"bookings": [booking_to_dict(b, with_slot=False, with_user=True) for b in rows]}


@router.post("/slots/ensure")
def ensure_slots(body: EnsureSlotsBody, db: Session = Depends(get_db), admin: User = Depends(admin_user)):
    """Materialize open slots for every day in [start, end]. Existing slots keep their state."""
    created = ensure_slots_exist(db, body.start, body.end, capacity=body.capacity)
    return {"ok": True, "created": created}


@router.patch("/slots/{slot_id}")
def patch_slot(
    slot_id: int,
    body: UpdateSlotBody,
    db: Session = Depends(get_db),
    admin: User = Depends(admin_user),
):
    return slot_to_dict(update_slot(db, slot_id, admin, capacity=body.capacity, is_blocked=body.is_blocked))


@router.post("/slots/{slot_id}/toggle")
def toggle_slot(slot_id: int, db: Session = Depends(get_db), admin: User = Depends(admin_user)):
    """Block an open slot or reopen a blocked one (single atomic update)."""
    return slot_to_dict(toggle_blocked(db, slot_id, admin))


@router.post("/slots/toggle")
def toggle_slot_by_label(body: ToggleByLabelBody, db: Session = Depends(get_db), admin: User = Depends(admin_user)):
    return slot_to_dict(toggle_blocked_by_label(db, body.slot_date, body.time_slot, admin))


@router.get("/slots/{slot_id}/bookings")
def slot_bookings(slot_id: int, db: Session = Depends(get_db), admin: User = Depends(admin_user)):
    """Active roster of one slot, oldest first, with student details."""
    slot = get_slot(db, slot_id)
    rows = list_bookings_for_slot(db, slot_id)
    return {
        "slot": slot_to_dict(slot, len(rows)),
        "bookings": [booking_to_dict(b, with_slot=False, with_user=True) for b in rows],
    }


# --- Bookings ---


@router.get("/bookings")
def all_bookings(
    slot_ids: list[int] | None = Query(None),
    limit: int = Query(500, ge=1, le=2000),
    db: Session = Depends(get_db),
    admin: User = Depends(admin_user),
):
    """All bookings newest first, or the active bookings of the given slot ids."""
    rows = list_bookings_for_slot_ids(db, slot_ids) if slot_ids else list_all_bookings(db, limit=limit)
    return {"bookings": [booking_to_dict(b, with_user=True) for b in rows]}


# --- Feedback ---


class FeedbackStatusBody(BaseModel):
    status: str = Field(..., pattern="^(" + "|".join(FEEDBACK_STATUSES) + ")$")


@router.get("/feedback")
def all_feedback(
    status: str | None = Query(None),
    db: Session = Depends(get_db),
    admin: User = Depends(admin_user),
):
    return {"feedback": [feedback_to_dict(f, with_user=True) for f in list_feedback(db, status)]}


@router.patch("/feedback/{feedback_id}")
def set_feedback_status(
    feedback_id: int,
    body: FeedbackStatusBody,
    db: Session = Depends(get_db),
    admin: User = Depends(admin_user),
):
    return feedback_to_dict(update_feedback_status(db, feedback_id, body.status))


# --- Announcements ---


class AnnouncementBody(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    content: str = Field(..., min_length=1)
    expires_at: datetime | None = None
    is_active: bool = True


@router.get("/announcements")
def all_announcements(db: Session = Depends(get_db), admin: User = Depends(admin_user)):
    return {"announcements": [announcement_to_dict(a) for a in list_announcements(db)]}


@router.post("/announcements", status_code=201)
def publish_announcement(body: AnnouncementBody, db: Session = Depends(get_db), admin: User = Depends(admin_user)):
    row = create_announcement(db, body.title, body.content, expires_at=body.expires_at, is_active=body.is_active)
    return announcement_to_dict(row)


@router.put("/announcements/{announcement_id}")
def edit_announcement(
    announcement_id: int,
    body: AnnouncementBody,
    db: Session = Depends(get_db),
    admin: User = Depends(admin_user),
):
    row = update_announcement(db, announcement_id, body.title, body.content, body.expires_at, body.is_active)
    return announcement_to_dict(row)


@router.delete("/announcements/{announcement_id}")
def remove_announcement(announcement_id: int, db: Session = Depends(get_db), admin: User = Depends(admin_user)):
    delete_announcement(db, announcement_id)
    return {"ok": True, "id": announcement_id}


# --- Users ---


class AdminFlagBody(BaseModel):
    is_admin: bool


@router.patch("/users/{user_id}")
def set_user_admin(
    user_id: str,
    body: AdminFlagBody,
    db: Session = Depends(get_db),
    admin: User = Depends(admin_user),
):
    """Grant or revoke admin. The user must have signed in at least once."""
    return user_to_dict(set_admin(db, user_id, body.is_admin))

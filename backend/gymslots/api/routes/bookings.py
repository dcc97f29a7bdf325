"""
Booking API for signed-in users.

A rejected booking returns 409 with a fresh snapshot of the slot, since another user may
have changed availability since the client last loaded it.
"""
import logging
from datetime import date

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from gymslots.api.deps import current_user
from gymslots.core.errors import AdmissionError, SlotNotFound, error_to_http
from gymslots.db.session import get_db
from gymslots.models.user import User
from gymslots.services.booking_service import (
    booking_to_dict,
    cancel_booking,
    create_booking,
    get_booking_counts_for_slots,
    get_user_booking_history,
    get_user_bookings,
    slot_snapshot,
)

router = APIRouter()
logger = logging.getLogger(__name__)


class CreateBookingBody(BaseModel):
    booking_date: date = Field(..., alias="date")
    time_slot: str = Field(..., min_length=1, max_length=32)


class SlotCountsBody(BaseModel):
    slot_ids: list[int] = Field(default_factory=list, max_length=500)


@router.post("", status_code=201)
def book_slot(body: CreateBookingBody, db: Session = Depends(get_db), user: User = Depends(current_user)):
    """Book one seat. One active booking per user per day."""
    try:
        booking = create_booking(db, user.id, body.booking_date, body.time_slot)
    except (AdmissionError, SlotNotFound) as exc:
        raise error_to_http(exc, slot=slot_snapshot(db, body.booking_date, body.time_slot))
    return booking_to_dict(booking)


@router.get("/me")
def my_bookings(db: Session = Depends(get_db), user: User = Depends(current_user)):
    """Active bookings, newest first."""
    return {"bookings": [booking_to_dict(b) for b in get_user_bookings(db, user.id)]}


@router.get("/me/history")
def my_booking_history(
    today: date | None = Query(None),
    db: Session = Depends(get_db),
    user: User = Depends(current_user),
):
    """Upcoming (soonest first), past and cancelled bookings."""
    history = get_user_booking_history(db, user.id, today or date.today())
    return {key: [booking_to_dict(b) for b in rows] for key, rows in history.items()}


@router.post("/{booking_id}/cancel")
def cancel(booking_id: int, db: Session = Depends(get_db), user: User = Depends(current_user)):
    """Cancel own booking. Re-cancelling returns the cancelled booking."""
    return booking_to_dict(cancel_booking(db, booking_id, user.id))


@router.post("/counts")
def booking_counts(body: SlotCountsBody, db: Session = Depends(get_db), user: User = Depends(current_user)):
    """Active count per slot id; ids without bookings map to 0."""
    counts = get_booking_counts_for_slots(db, body.slot_ids)
    return {"counts": {str(k): v for k, v in counts.items()}}


"""Slot calendar for signed-in users. Blocked slots are included; the client decides how to show them."""
import logging
from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from gymslots.api.deps import current_user
from gymslots.core.constants import TIME_SLOT_CATALOG
from gymslots.db.session import get_db
from gymslots.models.user import User
from gymslots.services.booking_service import get_booking_counts_for_slots, get_user_bookings
from gymslots.services.slot_service import list_slots, list_slots_in_range, slot_to_dict, week_dates

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/time-slots")
def time_slots(user: User = Depends(current_user)):
    """The fixed daily catalog, in display order."""
    return {"time_slots": list(TIME_SLOT_CATALOG)}


@router.get("")
def slots_in_range(
    start: date = Query(...),
    end: date = Query(...),
    db: Session = Depends(get_db),
    user: User = Depends(current_user),
):
    rows = list_slots_in_range(db, start, end)
    counts = get_booking_counts_for_slots(db, [s.id for s in rows])
    return {"slots": [slot_to_dict(s, counts[s.id]) for s in rows]}


@router.get("/week")
def week(
    anchor: date | None = Query(None, alias="date", description="Any day in the week (default today)"),
    db: Session = Depends(get_db),
    user: User = Depends(current_user),
):
    """
    Monday-start week containing `date`: every materialized slot with its active count,
    and which slot (if any) the caller holds on each day.
    """
    days = week_dates(anchor or date.today())
    rows = list_slots(db, days)
    counts = get_booking_counts_for_slots(db, [s.id for s in rows])
    mine = {b.slot_id: b.id for b in get_user_bookings(db, user.id)}
    slots = []
    for s in rows:
        item = slot_to_dict(s, counts[s.id])
        item["my_booking_id"] = mine.get(s.id)
        slots.append(item)
    return {
        "week": [d.isoformat() for d in days],
        "time_slots": list(TIME_SLOT_CATALOG),
        "slots": slots,
    }

"""
Booking ledger and admission protocol. The only module that writes to bookings.

create_booking runs every admission check and the insert in one transaction:
  1. slot for (date, time_slot) must exist          -> SlotNotFound
  2. slot must not be blocked                        -> SlotBlocked
  3. active bookings on the slot < capacity          -> SlotFull
  4. user has no active booking that day             -> DuplicateDayBooking
  5. user has no active booking on this slot         -> DuplicateSlotBooking
  6. insert the active booking

The slot row is locked (SELECT ... FOR UPDATE) before counting, so admissions to one
slot are serialized and two requests cannot both take the last seat. The per-user rules
are also held by partial unique indexes; an IntegrityError from a concurrent insert is
mapped back to the matching rule. On SQLite the whole transaction runs under
BEGIN IMMEDIATE (see gymslots.db.session).
"""
import logging
from datetime import date
from typing import Iterable

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from gymslots.core.constants import BOOKING_ACTIVE, BOOKING_CANCELLED
from gymslots.core.errors import (
    AdmissionError,
    DuplicateDayBooking,
    DuplicateSlotBooking,
    NotFound,
    SlotBlocked,
    SlotFull,
    SlotNotFound,
)
from gymslots.models.booking import Booking
from gymslots.models.slot import Slot
from gymslots.services.slot_service import slot_to_dict, validate_time_slot
from gymslots.services.user_service import user_summary

logger = logging.getLogger(__name__)

_DAY_INDEX = "uq_bookings_active_user_day"
_SLOT_INDEX = "uq_bookings_active_user_slot"


def _active_count(db: Session, slot_id: int) -> int:
    return (
        db.query(func.count(Booking.id))
        .filter(Booking.slot_id == slot_id, Booking.status == BOOKING_ACTIVE)
        .scalar()
        or 0
    )


def _has_active_on_day(db: Session, user_id: str, booking_date: date) -> bool:
    return (
        db.query(Booking.id)
        .filter(
            Booking.user_id == user_id,
            Booking.booking_date == booking_date,
            Booking.status == BOOKING_ACTIVE,
        )
        .first()
        is not None
    )


def _has_active_on_slot(db: Session, user_id: str, slot_id: int) -> bool:
    return (
        db.query(Booking.id)
        .filter(Booking.user_id == user_id, Booking.slot_id == slot_id, Booking.status == BOOKING_ACTIVE)
        .first()
        is not None
    )


def _admission_error_from_integrity(exc: IntegrityError, slot_id: int) -> AdmissionError | None:
    """
    Map a unique-index violation on bookings to the admission rule it enforces.
    PostgreSQL names the index; SQLite names the columns.
    """
    orig = getattr(exc, "orig", None)
    constraint_name = ""
    diag = getattr(orig, "diag", None)
    if diag is not None:
        constraint_name = getattr(diag, "constraint_name", "") or ""
    text = f"{constraint_name} {orig if orig is not None else exc}"
    if _DAY_INDEX in text or "bookings.booking_date" in text:
        return DuplicateDayBooking(slot_id=slot_id)
    if _SLOT_INDEX in text or "bookings.slot_id" in text:
        return DuplicateSlotBooking(slot_id=slot_id)
    return None


def create_booking(db: Session, user_id: str, booking_date: date, time_slot: str) -> Booking:
    """
    Admit and insert one booking for user_id on (booking_date, time_slot).
    Returns the booking with its slot loaded. Raises a NotFound or AdmissionError subclass on rejection.
    """
    validate_time_slot(time_slot)
    slot_id = None
    try:
        slot = (
            db.query(Slot)
            .filter(Slot.date == booking_date, Slot.time_slot == time_slot)
            .with_for_update()
            .first()
        )
        if slot is None:
            raise SlotNotFound(date=booking_date.isoformat(), time_slot=time_slot)
        slot_id = slot.id
        if slot.is_blocked:
            raise SlotBlocked(slot_id=slot_id)
        if _active_count(db, slot_id) >= slot.capacity:
            raise SlotFull(slot_id=slot_id)
        if _has_active_on_day(db, user_id, booking_date):
            raise DuplicateDayBooking(slot_id=slot_id)
        if _has_active_on_slot(db, user_id, slot_id):
            raise DuplicateSlotBooking(slot_id=slot_id)
        booking = Booking(user_id=user_id, slot_id=slot_id, booking_date=booking_date, status=BOOKING_ACTIVE)
        db.add(booking)
        db.flush()
        booking_id = booking.id
        db.commit()
    except (AdmissionError, SlotNotFound) as exc:
        db.rollback()
        logger.info("Booking rejected user=%s date=%s slot=%r: %s", user_id, booking_date, time_slot, exc.code)
        raise
    except IntegrityError as exc:
        db.rollback()
        admission = _admission_error_from_integrity(exc, slot_id)
        if admission is None:
            raise
        logger.info("Booking rejected user=%s date=%s slot=%r: %s (concurrent insert)", user_id, booking_date, time_slot, admission.code)
        raise admission from exc
    logger.info("Booking %s created user=%s slot=%s date=%s", booking_id, user_id, slot_id, booking_date)
    return get_booking(db, booking_id)


def get_booking(db: Session, booking_id: int) -> Booking:
    row = (
        db.query(Booking)
        .options(joinedload(Booking.slot), joinedload(Booking.user))
        .filter(Booking.id == booking_id)
        .first()
    )
    if not row:
        raise NotFound("Booking not found.", booking_id=booking_id)
    return row


def cancel_booking(db: Session, booking_id: int, user_id: str) -> Booking:
    """
    Move the caller's booking from active to cancelled. Cancelling an already-cancelled
    booking returns it unchanged. NotFound if the booking is absent or owned by someone else.
    Capacity is freed as soon as the transaction commits.
    """
    result = db.execute(
        update(Booking)
        .where(Booking.id == booking_id, Booking.user_id == user_id, Booking.status == BOOKING_ACTIVE)
        .values(status=BOOKING_CANCELLED)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount:
        db.commit()
        logger.info("Booking %s cancelled by user=%s", booking_id, user_id)
        return get_booking(db, booking_id)
    db.rollback()
    row = (
        db.query(Booking)
        .options(joinedload(Booking.slot))
        .filter(Booking.id == booking_id, Booking.user_id == user_id)
        .first()
    )
    if row is None:
        raise NotFound("Booking not found.", booking_id=booking_id)
    logger.debug("Booking %s already %s; cancel is a no-op", booking_id, row.status)
    return row


def get_booking_counts_for_slots(db: Session, slot_ids: Iterable[int]) -> dict[int, int]:
    """Active booking count per slot id. Every requested id is present, 0 when it has none."""
    ids = list(dict.fromkeys(slot_ids))
    counts = {sid: 0 for sid in ids}
    if not ids:
        return counts
    rows = (
        db.query(Booking.slot_id, func.count(Booking.id))
        .filter(Booking.slot_id.in_(ids), Booking.status == BOOKING_ACTIVE)
        .group_by(Booking.slot_id)
        .all()
    )
    for slot_id, n in rows:
        counts[slot_id] = n
    return counts


def get_user_bookings(db: Session, user_id: str) -> list[Booking]:
    """The user's active bookings, newest first, with slot."""
    return (
        db.query(Booking)
        .options(joinedload(Booking.slot))
        .filter(Booking.user_id == user_id, Booking.status == BOOKING_ACTIVE)
        .order_by(Booking.created_at.desc(), Booking.id.desc())
        .all()
    )


def get_user_booking_history(db: Session, user_id: str, today: date) -> dict[str, list[Booking]]:
    """
    Split every booking of the user into upcoming (active, slot date >= today),
    past (active, slot date before today) and cancelled.
    """
    rows = (
        db.query(Booking)
        .options(joinedload(Booking.slot))
        .filter(Booking.user_id == user_id)
        .order_by(Booking.booking_date.desc(), Booking.id.desc())
        .all()
    )
    out: dict[str, list[Booking]] = {"upcoming": [], "past": [], "cancelled": []}
    for b in rows:
        if b.status == BOOKING_CANCELLED:
            out["cancelled"].append(b)
        elif b.booking_date >= today:
            out["upcoming"].append(b)
        else:
            out["past"].append(b)
    out["upcoming"].reverse()  # soonest first
    return out


def list_bookings_for_slot(db: Session, slot_id: int) -> list[Booking]:
    """Active roster of one slot, oldest first, with user profiles. No admission checks."""
    return (
        db.query(Booking)
        .options(joinedload(Booking.user))
        .filter(Booking.slot_id == slot_id, Booking.status == BOOKING_ACTIVE)
        .order_by(Booking.created_at.asc(), Booking.id.asc())
        .all()
    )


def list_bookings_for_slot_label(db: Session, slot_date: date, time_slot: str) -> list[Booking]:
    """Roster by (date, time_slot); empty when the slot was never materialized."""
    validate_time_slot(time_slot)
    slot = db.query(Slot).filter(Slot.date == slot_date, Slot.time_slot == time_slot).first()
    if slot is None:
        return []
    return list_bookings_for_slot(db, slot.id)


def list_bookings_for_slot_ids(db: Session, slot_ids: Iterable[int]) -> list[Booking]:
    ids = list(dict.fromkeys(slot_ids))
    if not ids:
        return []
    return (
        db.query(Booking)
        .options(joinedload(Booking.user), joinedload(Booking.slot))
        .filter(Booking.slot_id.in_(ids), Booking.status == BOOKING_ACTIVE)
        .order_by(Booking.created_at.asc(), Booking.id.asc())
        .all()
    )


def list_all_bookings(db: Session, limit: int = 500) -> list[Booking]:
    """Admin: every booking (any status), newest first."""
    return (
        db.query(Booking)
        .options(joinedload(Booking.user), joinedload(Booking.slot))
        .order_by(Booking.created_at.desc(), Booking.id.desc())
        .limit(limit)
        .all()
    )


def slot_snapshot(db: Session, slot_date: date, time_slot: str) -> dict | None:
    """Fresh view of a slot (with active count) for clients resynchronizing after a rejection."""
    slot = db.query(Slot).filter(Slot.date == slot_date, Slot.time_slot == time_slot).first()
    if slot is None:
        return None
    return slot_to_dict(slot, _active_count(db, slot.id))


def booking_to_dict(b: Booking, with_slot: bool = True, with_user: bool = False) -> dict:
    out = {
        "id": b.id,
        "user_id": b.user_id,
        "slot_id": b.slot_id,
        "booking_date": b.booking_date.isoformat(),
        "status": b.status,
        "created_at": b.created_at.isoformat() if b.created_at else None,
    }
    if with_slot:
        out["slot"] = slot_to_dict(b.slot) if b.slot else None
    if with_user:
        out["user"] = user_summary(b.user)
    return out

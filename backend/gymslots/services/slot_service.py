"""
Slot registry: the catalogue of bookable (date, time_slot) cells.

Slots are materialized on demand for a date range (idempotent insert-ignore on the
unique (date, time_slot) key). Booking never creates slots. Blocking is a single
atomic UPDATE so concurrent admin clicks cannot lose an update.
"""
import logging
import math
from datetime import date, timedelta
from typing import Iterable

from sqlalchemy import case, not_, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from gymslots.config import settings
from gymslots.core.constants import (
    DAYS_PER_WEEK,
    FILLING_FAST_RATIO,
    MAX_ENSURE_RANGE_DAYS,
    SLOT_AVAILABLE,
    SLOT_BLOCKED,
    SLOT_FILLING_FAST,
    SLOT_FULL,
    TIME_SLOT_CATALOG,
)
from gymslots.core.errors import InvalidRequest, NotFound, SlotNotFound
from gymslots.models.slot import Slot
from gymslots.models.user import User
from gymslots.services.user_service import ensure_admin

logger = logging.getLogger(__name__)

# Display order follows the catalog, not the label text ("6:00 - 7:00 PM" sorts before "8:00 ...").
_CATALOG_ORDER = case(
    {label: i for i, label in enumerate(TIME_SLOT_CATALOG)},
    value=Slot.time_slot,
    else_=len(TIME_SLOT_CATALOG),
)


def validate_time_slot(label: str) -> str:
    if label not in TIME_SLOT_CATALOG:
        raise InvalidRequest(f"Unknown time slot {label!r}.", time_slots=list(TIME_SLOT_CATALOG))
    return label


def dates_between(start: date, end: date) -> list[date]:
    """Inclusive list of dates from start to end."""
    if end < start:
        raise InvalidRequest("end date must not be before start date.")
    return [start + timedelta(days=i) for i in range((end - start).days + 1)]


def week_dates(anchor: date) -> list[date]:
    """Monday-start week containing anchor."""
    monday = anchor - timedelta(days=anchor.weekday())
    return [monday + timedelta(days=i) for i in range(DAYS_PER_WEEK)]


def _insert_for(db: Session):
    return pg_insert if db.get_bind().dialect.name == "postgresql" else sqlite_insert


def ensure_slots_exist(
    db: Session,
    start: date,
    end: date,
    time_slots: Iterable[str] = TIME_SLOT_CATALOG,
    capacity: int | None = None,
) -> int:
    """
    Insert an open slot with default capacity for every missing (date, time_slot) in the
    range x catalog. Existing rows (and their blocked state) are left untouched.
    Safe to call repeatedly and concurrently. Returns the number of rows created.
    """
    days = dates_between(start, end)
    if len(days) > MAX_ENSURE_RANGE_DAYS:
        raise InvalidRequest(f"Date range is limited to {MAX_ENSURE_RANGE_DAYS} days.")
    labels = [validate_time_slot(t) for t in time_slots]
    cap = capacity if capacity is not None else settings.default_slot_capacity
    if cap < 1:
        raise InvalidRequest("capacity must be at least 1.")
    rows = [
        {"date": d, "time_slot": label, "capacity": cap, "is_blocked": False}
        for d in days
        for label in labels
    ]
    if not rows:
        return 0
    insert = _insert_for(db)
    stmt = insert(Slot).values(rows).on_conflict_do_nothing(index_elements=["date", "time_slot"])
    result = db.execute(stmt)
    db.commit()
    created = max(result.rowcount or 0, 0)
    logger.info("ensure_slots_exist %s..%s: %s created, %s already present", start, end, created, len(rows) - created)
    return created


def list_slots(db: Session, dates: Iterable[date]) -> list[Slot]:
    """All slots (blocked included) on the given dates, ordered by date then catalog position."""
    wanted = sorted(set(dates))
    if not wanted:
        return []
    return (
        db.query(Slot)
        .filter(Slot.date.in_(wanted))
        .order_by(Slot.date.asc(), _CATALOG_ORDER, Slot.time_slot.asc())
        .all()
    )


def list_slots_in_range(db: Session, start: date, end: date) -> list[Slot]:
    if end < start:
        raise InvalidRequest("end date must not be before start date.")
    return (
        db.query(Slot)
        .filter(Slot.date >= start, Slot.date <= end)
        .order_by(Slot.date.asc(), _CATALOG_ORDER, Slot.time_slot.asc())
        .all()
    )


def get_slot(db: Session, slot_id: int) -> Slot:
    row = db.query(Slot).filter(Slot.id == slot_id).first()
    if not row:
        raise NotFound("Slot not found.", slot_id=slot_id)
    return row


def find_slot(db: Session, slot_date: date, time_slot: str) -> Slot:
    """Resolve (date, label) to its slot; SlotNotFound when it was never materialized."""
    validate_time_slot(time_slot)
    row = db.query(Slot).filter(Slot.date == slot_date, Slot.time_slot == time_slot).first()
    if not row:
        raise SlotNotFound(date=slot_date.isoformat(), time_slot=time_slot)
    return row


def update_slot(
    db: Session,
    slot_id: int,
    actor: User,
    capacity: int | None = None,
    is_blocked: bool | None = None,
) -> Slot:
    """Admin: set capacity and/or blocked flag. Lowering capacity below current bookings only stops new ones."""
    ensure_admin(actor)
    values: dict = {}
    if capacity is not None:
        if capacity < 1:
            raise InvalidRequest("capacity must be at least 1.")
        values["capacity"] = capacity
    if is_blocked is not None:
        values["is_blocked"] = is_blocked
    if not values:
        return get_slot(db, slot_id)
    result = db.execute(
        update(Slot).where(Slot.id == slot_id).values(**values).execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        db.rollback()
        raise NotFound("Slot not found.", slot_id=slot_id)
    db.commit()
    logger.info("Slot %s updated by %s: %s", slot_id, actor.id, values)
    return get_slot(db, slot_id)


def upsert_slot(
    db: Session,
    slot_date: date,
    time_slot: str,
    actor: User,
    capacity: int | None = None,
    is_blocked: bool | None = None,
) -> Slot:
    """
    Admin: create the (date, time_slot) slot or update it in place (INSERT ... ON CONFLICT DO UPDATE).
    Fields left as None keep their stored value, or default capacity and open on insert.
    """
    ensure_admin(actor)
    validate_time_slot(time_slot)
    if capacity is not None and capacity < 1:
        raise InvalidRequest("capacity must be at least 1.")
    changed = [name for name, value in (("capacity", capacity), ("is_blocked", is_blocked)) if value is not None]
    insert = _insert_for(db)
    stmt = insert(Slot).values(
        date=slot_date,
        time_slot=time_slot,
        capacity=capacity if capacity is not None else settings.default_slot_capacity,
        is_blocked=bool(is_blocked),
    )
    if changed:
        stmt = stmt.on_conflict_do_update(
            index_elements=["date", "time_slot"],
            set_={name: getattr(stmt.excluded, name) for name in changed},
        )
    else:
        stmt = stmt.on_conflict_do_nothing(index_elements=["date", "time_slot"])
    db.execute(stmt)
    db.commit()
    logger.info("Slot %s %s upserted by %s: %s", slot_date, time_slot, actor.id, changed or "defaults")
    return find_slot(db, slot_date, time_slot)


def set_blocked(db: Session, slot_id: int, blocked: bool, actor: User) -> Slot:
    return update_slot(db, slot_id, actor, is_blocked=blocked)


def toggle_blocked(db: Session, slot_id: int, actor: User) -> Slot:
    """
    Flip is_blocked in one statement (UPDATE ... SET is_blocked = NOT is_blocked RETURNING).
    Two concurrent toggles always land back on the original state.
    """
    ensure_admin(actor)
    stmt = (
        update(Slot)
        .where(Slot.id == slot_id)
        .values(is_blocked=not_(Slot.is_blocked))
        .returning(Slot.is_blocked)
        .execution_options(synchronize_session=False)
    )
    row = db.execute(stmt).first()
    if row is None:
        db.rollback()
        raise NotFound("Slot not found.", slot_id=slot_id)
    db.commit()
    logger.info("Slot %s toggled by %s: is_blocked=%s", slot_id, actor.id, row.is_blocked)
    return get_slot(db, slot_id)


def toggle_blocked_by_label(db: Session, slot_date: date, time_slot: str, actor: User) -> Slot:
    ensure_admin(actor)
    slot = find_slot(db, slot_date, time_slot)
    return toggle_blocked(db, slot.id, actor)


def slot_status(slot: Slot, booking_count: int) -> str:
    """Calendar status: blocked wins, then full, then filling-fast from 60% of capacity (floored)."""
    if slot.is_blocked:
        return SLOT_BLOCKED
    if booking_count >= slot.capacity:
        return SLOT_FULL
    if booking_count >= math.floor(slot.capacity * FILLING_FAST_RATIO):
        return SLOT_FILLING_FAST
    return SLOT_AVAILABLE


def slot_to_dict(slot: Slot, booking_count: int | None = None) -> dict:
    out = {
        "id": slot.id,
        "date": slot.date.isoformat(),
        "time_slot": slot.time_slot,
        "capacity": slot.capacity,
        "is_blocked": slot.is_blocked,
        "created_at": slot.created_at.isoformat() if slot.created_at else None,
    }
    if booking_count is not None:
        out["booking_count"] = booking_count
        out["available"] = max(slot.capacity - booking_count, 0)
        out["status"] = slot_status(slot, booking_count)
    return out

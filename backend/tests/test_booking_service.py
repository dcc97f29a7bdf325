from datetime import date

import pytest
from sqlalchemy.exc import IntegrityError

from gymslots.core.constants import BOOKING_ACTIVE, BOOKING_CANCELLED
from gymslots.core.errors import (
    DuplicateDayBooking,
    DuplicateSlotBooking,
    InvalidRequest,
    NotFound,
    SlotBlocked,
    SlotFull,
    SlotNotFound,
)
from gymslots.models.booking import Booking
from gymslots.services.booking_service import (
    _admission_error_from_integrity,
    booking_to_dict,
    cancel_booking,
    create_booking,
    get_booking_counts_for_slots,
    get_user_booking_history,
    get_user_bookings,
    list_bookings_for_slot,
    list_bookings_for_slot_ids,
    list_bookings_for_slot_label,
    slot_snapshot,
)
from gymslots.services.slot_service import ensure_slots_exist, find_slot, set_blocked, update_slot
from gymslots.services.user_service import get_user

MONDAY = date(2025, 9, 1)
TUESDAY = date(2025, 9, 2)
MORNING = "5:00 - 6:00 AM"
EVENING = "6:00 - 7:00 PM"


@pytest.fixture
def users(make_user):
    for uid in ("alice", "bob", "carol"):
        make_user(uid)
    make_user("admin", admin=True)
    return ("alice", "bob", "carol")


def _capacity(db, slot_date, label, capacity) -> int:
    slot = find_slot(db, slot_date, label)
    update_slot(db, slot.id, get_user(db, "admin"), capacity=capacity)
    return slot.id


def test_create_booking_returns_active_booking_with_slot(db, users) -> None:
    ensure_slots_exist(db, MONDAY, MONDAY)

    booking = create_booking(db, "alice", MONDAY, MORNING)

    assert booking.status == BOOKING_ACTIVE
    assert booking.booking_date == MONDAY
    assert booking.slot.time_slot == MORNING
    out = booking_to_dict(booking)
    assert out["slot"]["date"] == "2025-09-01"


def test_create_booking_does_not_materialize_slots(db, users) -> None:
    with pytest.raises(SlotNotFound):
        create_booking(db, "alice", MONDAY, MORNING)
    assert db.query(Booking).count() == 0


def test_create_booking_unknown_label_is_invalid(db, users) -> None:
    ensure_slots_exist(db, MONDAY, MONDAY)

    with pytest.raises(InvalidRequest):
        create_booking(db, "alice", MONDAY, "lunch")


def test_blocked_slot_rejects_booking(db, users) -> None:
    ensure_slots_exist(db, MONDAY, MONDAY)
    set_blocked(db, find_slot(db, MONDAY, MORNING).id, True, get_user(db, "admin"))

    with pytest.raises(SlotBlocked):
        create_booking(db, "alice", MONDAY, MORNING)


def test_capacity_scenario_full_then_cancel_frees_seat(db, users) -> None:
    ensure_slots_exist(db, MONDAY, MONDAY)
    slot_id = _capacity(db, MONDAY, MORNING, 2)

    a = create_booking(db, "alice", MONDAY, MORNING)
    assert get_booking_counts_for_slots(db, [slot_id]) == {slot_id: 1}
    create_booking(db, "bob", MONDAY, MORNING)
    assert get_booking_counts_for_slots(db, [slot_id]) == {slot_id: 2}
    with pytest.raises(SlotFull):
        create_booking(db, "carol", MONDAY, MORNING)

    cancel_booking(db, a.id, "alice")
    assert get_booking_counts_for_slots(db, [slot_id]) == {slot_id: 1}
    assert create_booking(db, "carol", MONDAY, MORNING).user_id == "carol"


def test_blocked_takes_precedence_over_full(db, users) -> None:
    ensure_slots_exist(db, MONDAY, MONDAY)
    slot_id = _capacity(db, MONDAY, MORNING, 1)
    create_booking(db, "alice", MONDAY, MORNING)
    set_blocked(db, slot_id, True, get_user(db, "admin"))

    with pytest.raises(SlotBlocked):
        create_booking(db, "bob", MONDAY, MORNING)


def test_second_slot_same_day_is_duplicate_day(db, users) -> None:
    ensure_slots_exist(db, MONDAY, MONDAY)
    create_booking(db, "alice", MONDAY, MORNING)

    with pytest.raises(DuplicateDayBooking):
        create_booking(db, "alice", MONDAY, EVENING)


def test_same_slot_twice_is_duplicate_day(db, users) -> None:
    ensure_slots_exist(db, MONDAY, MONDAY)
    create_booking(db, "alice", MONDAY, MORNING)

    with pytest.raises(DuplicateDayBooking):
        create_booking(db, "alice", MONDAY, MORNING)


def test_full_is_reported_before_duplicate_day(db, users) -> None:
    ensure_slots_exist(db, MONDAY, MONDAY)
    _capacity(db, MONDAY, EVENING, 1)
    create_booking(db, "alice", MONDAY, MORNING)
    create_booking(db, "bob", MONDAY, EVENING)

    with pytest.raises(SlotFull):
        create_booking(db, "alice", MONDAY, EVENING)


def test_different_days_are_independent(db, users) -> None:
    ensure_slots_exist(db, MONDAY, TUESDAY)
    create_booking(db, "alice", MONDAY, MORNING)

    assert create_booking(db, "alice", TUESDAY, MORNING).booking_date == TUESDAY


def test_rebook_same_day_after_cancel(db, users) -> None:
    ensure_slots_exist(db, MONDAY, MONDAY)
    first = create_booking(db, "alice", MONDAY, MORNING)
    cancel_booking(db, first.id, "alice")

    second = create_booking(db, "alice", MONDAY, EVENING)

    assert second.id != first.id
    statuses = {b.id: b.status for b in db.query(Booking).all()}
    assert statuses == {first.id: BOOKING_CANCELLED, second.id: BOOKING_ACTIVE}


def test_cancel_is_idempotent(db, users) -> None:
    ensure_slots_exist(db, MONDAY, MONDAY)
    booking = create_booking(db, "alice", MONDAY, MORNING)

    first = cancel_booking(db, booking.id, "alice")
    second = cancel_booking(db, booking.id, "alice")

    assert first.status == BOOKING_CANCELLED
    assert second.status == BOOKING_CANCELLED
    assert second.id == booking.id


def test_cancel_someone_elses_booking_is_not_found(db, users) -> None:
    ensure_slots_exist(db, MONDAY, MONDAY)
    booking = create_booking(db, "alice", MONDAY, MORNING)

    with pytest.raises(NotFound):
        cancel_booking(db, booking.id, "bob")
    with pytest.raises(NotFound):
        cancel_booking(db, 12345, "alice")
    assert get_booking_counts_for_slots(db, [booking.slot_id]) == {booking.slot_id: 1}


def test_counts_include_slots_without_bookings(db, users) -> None:
    ensure_slots_exist(db, MONDAY, MONDAY)
    a = find_slot(db, MONDAY, MORNING).id
    b = find_slot(db, MONDAY, "6:00 - 7:00 AM").id
    c = find_slot(db, MONDAY, EVENING).id
    create_booking(db, "alice", MONDAY, MORNING)
    create_booking(db, "bob", MONDAY, MORNING)
    create_booking(db, "carol", MONDAY, EVENING)

    assert get_booking_counts_for_slots(db, [a, b, c]) == {a: 2, b: 0, c: 1}
    assert get_booking_counts_for_slots(db, []) == {}
    assert get_booking_counts_for_slots(db, [999]) == {999: 0}


def test_counts_ignore_cancelled(db, users) -> None:
    ensure_slots_exist(db, MONDAY, MONDAY)
    booking = create_booking(db, "alice", MONDAY, MORNING)
    cancel_booking(db, booking.id, "alice")

    assert get_booking_counts_for_slots(db, [booking.slot_id]) == {booking.slot_id: 0}


def test_user_bookings_are_active_only(db, users) -> None:
    ensure_slots_exist(db, MONDAY, TUESDAY)
    kept = create_booking(db, "alice", TUESDAY, MORNING)
    dropped = create_booking(db, "alice", MONDAY, MORNING)
    cancel_booking(db, dropped.id, "alice")

    assert [b.id for b in get_user_bookings(db, "alice")] == [kept.id]


def test_history_splits_upcoming_past_and_cancelled(db, users) -> None:
    ensure_slots_exist(db, MONDAY, date(2025, 9, 4))
    past = create_booking(db, "alice", MONDAY, MORNING)
    today = create_booking(db, "alice", TUESDAY, MORNING)
    later = create_booking(db, "alice", date(2025, 9, 4), MORNING)
    cancelled = create_booking(db, "alice", date(2025, 9, 3), MORNING)
    cancel_booking(db, cancelled.id, "alice")

    history = get_user_booking_history(db, "alice", TUESDAY)

    assert [b.id for b in history["upcoming"]] == [today.id, later.id]
    assert [b.id for b in history["past"]] == [past.id]
    assert [b.id for b in history["cancelled"]] == [cancelled.id]


def test_slot_roster_lists_active_bookings_with_users(db, users) -> None:
    ensure_slots_exist(db, MONDAY, MONDAY)
    first = create_booking(db, "alice", MONDAY, MORNING)
    second = create_booking(db, "bob", MONDAY, MORNING)
    gone = create_booking(db, "carol", MONDAY, MORNING)
    cancel_booking(db, gone.id, "carol")

    roster = list_bookings_for_slot(db, first.slot_id)

    assert [b.id for b in roster] == [first.id, second.id]
    assert booking_to_dict(roster[0], with_slot=False, with_user=True)["user"]["email"] == "alice@example.com"
    assert [b.id for b in list_bookings_for_slot_label(db, MONDAY, MORNING)] == [first.id, second.id]
    assert list_bookings_for_slot_label(db, TUESDAY, MORNING) == []
    assert [b.id for b in list_bookings_for_slot_ids(db, [first.slot_id])] == [first.id, second.id]


def test_slot_snapshot_reports_current_count(db, users) -> None:
    ensure_slots_exist(db, MONDAY, MONDAY)
    create_booking(db, "alice", MONDAY, MORNING)

    snap = slot_snapshot(db, MONDAY, MORNING)

    assert snap["booking_count"] == 1
    assert snap["available"] == 29
    assert slot_snapshot(db, TUESDAY, MORNING) is None


def test_partial_index_blocks_second_active_booking_per_day(db, users) -> None:
    ensure_slots_exist(db, MONDAY, MONDAY)
    morning = find_slot(db, MONDAY, MORNING).id
    evening = find_slot(db, MONDAY, EVENING).id
    db.add(Booking(user_id="alice", slot_id=morning, booking_date=MONDAY, status=BOOKING_ACTIVE))
    db.commit()

    db.add(Booking(user_id="alice", slot_id=evening, booking_date=MONDAY, status=BOOKING_ACTIVE))
    with pytest.raises(IntegrityError) as excinfo:
        db.commit()
    db.rollback()

    assert isinstance(_admission_error_from_integrity(excinfo.value, evening), DuplicateDayBooking)


def test_partial_index_ignores_cancelled_rows(db, users) -> None:
    ensure_slots_exist(db, MONDAY, MONDAY)
    morning = find_slot(db, MONDAY, MORNING).id
    db.add(Booking(user_id="alice", slot_id=morning, booking_date=MONDAY, status=BOOKING_CANCELLED))
    db.add(Booking(user_id="alice", slot_id=morning, booking_date=MONDAY, status=BOOKING_CANCELLED))
    db.add(Booking(user_id="alice", slot_id=morning, booking_date=MONDAY, status=BOOKING_ACTIVE))
    db.commit()

    assert db.query(Booking).count() == 3


def test_unrelated_integrity_error_is_not_an_admission_error() -> None:
    exc = IntegrityError("INSERT ...", {}, Exception("FOREIGN KEY constraint failed"))

    assert _admission_error_from_integrity(exc, 1) is None


def test_duplicate_slot_mapping_from_integrity_message() -> None:
    exc = IntegrityError(
        "INSERT ...", {}, Exception("UNIQUE constraint failed: bookings.user_id, bookings.slot_id")
    )

    assert isinstance(_admission_error_from_integrity(exc, 1), DuplicateSlotBooking)

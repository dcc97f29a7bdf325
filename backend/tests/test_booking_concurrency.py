"""Admission under concurrent requests: each worker uses its own session and connection."""
import threading
from concurrent.futures import ThreadPoolExecutor

from gymslots.core.errors import AdmissionError, DuplicateDayBooking, SlotFull
from gymslots.models.booking import Booking
from gymslots.services.booking_service import create_booking, get_booking_counts_for_slots
from gymslots.services.slot_service import find_slot, update_slot
from gymslots.services.user_service import get_user

from conftest import MONDAY, MORNING

SLOT_LABELS = ("5:00 - 6:00 AM", "6:00 - 7:00 AM", "7:00 - 8:00 AM", "6:00 - 7:00 PM")


def _race(session_factory, attempts):
    """Run (user_id, date, label) attempts at once; return a list of 'ok' or error codes."""
    barrier = threading.Barrier(len(attempts))

    def attempt(args):
        user_id, slot_date, label = args
        session = session_factory()
        try:
            barrier.wait()
            create_booking(session, user_id, slot_date, label)
            return "ok"
        except AdmissionError as exc:
            return exc.code
        finally:
            session.close()

    with ThreadPoolExecutor(max_workers=len(attempts)) as pool:
        return list(pool.map(attempt, attempts))


def test_racing_for_last_seats_admits_exactly_capacity(session_factory, make_user, make_slots) -> None:
    make_user("admin", admin=True)
    users = [make_user(f"user{i}") for i in range(8)]
    make_slots()
    with session_factory() as s:
        slot_id = find_slot(s, MONDAY, MORNING).id
        update_slot(s, slot_id, get_user(s, "admin"), capacity=3)

    results = _race(session_factory, [(u, MONDAY, MORNING) for u in users])

    assert results.count("ok") == 3
    assert results.count(SlotFull.code) == 5
    with session_factory() as s:
        assert get_booking_counts_for_slots(s, [slot_id]) == {slot_id: 3}


def test_same_user_racing_across_slots_gets_one_booking(session_factory, make_user, make_slots) -> None:
    make_user("alice")
    make_slots()

    results = _race(session_factory, [("alice", MONDAY, label) for label in SLOT_LABELS])

    assert results.count("ok") == 1
    assert results.count(DuplicateDayBooking.code) == len(SLOT_LABELS) - 1
    with session_factory() as s:
        active = s.query(Booking).filter(Booking.user_id == "alice", Booking.status == "active").count()
        assert active == 1

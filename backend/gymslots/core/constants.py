"""
Centralized constants for slots and bookings.

The time-slot catalog is static configuration: materialization, display order and
admission lookups all read it from here.
"""

# Canonical order of the daily sessions. Display order follows this list, not the label text.
TIME_SLOT_CATALOG: tuple[str, ...] = (
    "5:00 - 6:00 AM",
    "6:00 - 7:00 AM",
    "7:00 - 8:00 AM",
    "6:00 - 7:00 PM",
    "8:00 - 9:00 PM",
    "9:00 - 10:00 PM",
)

DEFAULT_SLOT_CAPACITY = 30

# Derived slot status shown on the calendar; filling-fast from floor(capacity * ratio) bookings
SLOT_AVAILABLE = "available"
SLOT_FILLING_FAST = "filling-fast"
SLOT_FULL = "full"
SLOT_BLOCKED = "blocked"
FILLING_FAST_RATIO = 0.6

# Booking status values (stored as strings)
BOOKING_ACTIVE = "active"
BOOKING_CANCELLED = "cancelled"
BOOKING_STATUSES = (BOOKING_ACTIVE, BOOKING_CANCELLED)

# Feedback triage status values; any-to-any transitions are allowed
FEEDBACK_NEW = "new"
FEEDBACK_REVIEWED = "reviewed"
FEEDBACK_RESOLVED = "resolved"
FEEDBACK_STATUSES = (FEEDBACK_NEW, FEEDBACK_REVIEWED, FEEDBACK_RESOLVED)

FEEDBACK_RATING_MIN = 1
FEEDBACK_RATING_MAX = 5

# Upper bound on days materialized per admin request
MAX_ENSURE_RANGE_DAYS = 366

DAYS_PER_WEEK = 7

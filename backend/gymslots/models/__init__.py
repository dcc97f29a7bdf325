from gymslots.models.announcement import Announcement
from gymslots.models.booking import Booking
from gymslots.models.feedback import Feedback
from gymslots.models.slot import Slot
from gymslots.models.user import User

__all__ = [
    "Announcement",
    "Booking",
    "Feedback",
    "Slot",
    "User",
]

"""
A user's claim on one seat of a slot. Cancellation flips status; rows are never deleted.

Partial unique indexes hold the per-user rules for active rows even if two requests race:
one active booking per (user, booking_date) and per (user, slot).
"""
from sqlalchemy import CheckConstraint, Column, Date, DateTime, ForeignKey, Index, Integer, String, text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from gymslots.core.constants import BOOKING_ACTIVE
from gymslots.db.base import Base

ACTIVE_ONLY = text("status = 'active'")


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(64), ForeignKey("users.id"), nullable=False, index=True)
    slot_id = Column(Integer, ForeignKey("slots.id"), nullable=False, index=True)
    booking_date = Column(Date, nullable=False, index=True)  # denormalized from slots.date
    status = Column(String(16), nullable=False, default=BOOKING_ACTIVE)  # active | cancelled
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    slot = relationship("Slot")
    user = relationship("User")

    __table_args__ = (
        CheckConstraint("status IN ('active', 'cancelled')", name="ck_bookings_status"),
        Index(
            "uq_bookings_active_user_day",
            "user_id",
            "booking_date",
            unique=True,
            postgresql_where=ACTIVE_ONLY,
            sqlite_where=ACTIVE_ONLY,
        ),
        Index(
            "uq_bookings_active_user_slot",
            "user_id",
            "slot_id",
            unique=True,
            postgresql_where=ACTIVE_ONLY,
            sqlite_where=ACTIVE_ONLY,
        ),
    )

    def __repr__(self) -> str:
        return f"<Booking(id={self.id}, user={self.user_id}, slot={self.slot_id}, status={self.status})>"

"""Bookable (date, time_slot) cell. Created lazily by materialization; never deleted."""
from sqlalchemy import Boolean, CheckConstraint, Column, Date, DateTime, Integer, String, UniqueConstraint
from sqlalchemy.sql import false, func

from gymslots.core.constants import DEFAULT_SLOT_CAPACITY
from gymslots.db.base import Base


class Slot(Base):
    __tablename__ = "slots"

    id = Column(Integer, primary_key=True, autoincrement=True)
    date = Column(Date, nullable=False, index=True)
    time_slot = Column(String(32), nullable=False)  # label from TIME_SLOT_CATALOG
    capacity = Column(Integer, nullable=False, default=DEFAULT_SLOT_CAPACITY)
    is_blocked = Column(Boolean, nullable=False, default=False, server_default=false())
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("date", "time_slot", name="uq_slots_date_time_slot"),
        CheckConstraint("capacity > 0", name="ck_slots_capacity_positive"),
    )

    def __repr__(self) -> str:
        return f"<Slot(id={self.id}, date={self.date}, time_slot={self.time_slot!r}, blocked={self.is_blocked})>"

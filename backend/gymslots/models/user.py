"""Local mirror of the auth provider's user. is_admin here is the only admin claim the API trusts."""
from sqlalchemy import Boolean, Column, DateTime, String
from sqlalchemy.sql import false, func

from gymslots.db.base import Base


class User(Base):
    __tablename__ = "users"

    id = Column(String(64), primary_key=True)  # auth provider subject (sub claim)
    email = Column(String(255), nullable=False, index=True)
    name = Column(String(255), nullable=True)
    student_id = Column(String(64), nullable=True)
    is_admin = Column(Boolean, nullable=False, default=False, server_default=false())
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

from gymslots.db.base import Base
from gymslots.db.session import SessionLocal, engine, get_db, init_db
from gymslots.db.tables import ALL_TABLE_NAMES

__all__ = ["get_db", "engine", "SessionLocal", "Base", "init_db", "ALL_TABLE_NAMES"]

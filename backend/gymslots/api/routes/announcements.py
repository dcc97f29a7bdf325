"""Announcements visible to users right now."""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from gymslots.api.deps import current_user
from gymslots.db.session import get_db
from gymslots.models.user import User
from gymslots.services.announcement_service import announcement_to_dict, list_active_announcements

router = APIRouter()


@router.get("")
def active_announcements(db: Session = Depends(get_db), user: User = Depends(current_user)):
    return {"announcements": [announcement_to_dict(a) for a in list_active_announcements(db)]}

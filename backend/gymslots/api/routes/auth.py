"""Current-user profile. Sign-up, sign-in and sign-out belong to the auth provider."""
from fastapi import APIRouter, Depends

from gymslots.api.deps import current_user
from gymslots.models.user import User
from gymslots.services.user_service import user_to_dict

router = APIRouter()


@router.get("/me")
def me(user: User = Depends(current_user)):
    """Profile for the bearer token (created on first call). is_admin is the server-side flag."""
    return user_to_dict(user)

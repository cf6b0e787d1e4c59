from fastapi import APIRouter, Depends

from planner.models.user import User
from planner.schemas.user import UserInDB
from planner.dependencies import get_current_user_required

router = APIRouter()

@router.get("/me", response_model=UserInDB)
def read_users_me(current_user: User = Depends(get_current_user_required)):
    return current_user

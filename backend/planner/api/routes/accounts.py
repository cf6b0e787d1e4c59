from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List

from planner.db.session import get_db
from planner.models.user import User
from planner.models.social_account import SocialAccount
from planner.schemas.social_account import SocialAccountInDB
from planner.dependencies import get_current_user_required
from planner.services.lookups import get_owned_account

router = APIRouter()

@router.get("/accounts", response_model=List[SocialAccountInDB])
def get_connected_accounts(db: Session = Depends(get_db), current_user: User = Depends(get_current_user_required)):
    return (
        db.query(SocialAccount)
        .filter_by(user_id=current_user.id)
        .order_by(SocialAccount.created_at.desc(), SocialAccount.id.desc())
        .all()
    )

@router.delete("/accounts")
def disconnect_account(
    account_id: int = Query(..., alias="accountId"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user_required),
):
    """Removes one connected account. Posts that referenced it keep existing without an account."""
    account = get_owned_account(db, account_id, current_user.id)
    for post in account.posts:
        post.social_account_id = None
    db.delete(account)
    db.commit()
    return {"success": True, "deleted_id": account_id}

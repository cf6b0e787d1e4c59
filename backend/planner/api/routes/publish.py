from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from planner.db.session import get_db
from planner.dependencies import get_current_user_required, get_token_manager
from planner.models.user import User
from planner.schemas.post import PublishRequest, PublishResponse
from planner.services.lookups import get_owned_account, get_owned_post
from planner.services.publishing import publish_now
from planner.services.tokens import TokenManager
from planner.social.registry import AdapterRegistry, get_registry

router = APIRouter()

@router.post("/publish", response_model=PublishResponse)
def publish_post(
    request: PublishRequest,
    db: Session = Depends(get_db),
    registry: AdapterRegistry = Depends(get_registry),
    token_manager: TokenManager = Depends(get_token_manager),
    current_user: User = Depends(get_current_user_required),
):
    """Publishes a post right away. Provider errors come back as a 400 with their text."""
    post = get_owned_post(db, request.post_id, current_user.id)
    account = get_owned_account(db, request.account_id, current_user.id)
    outcome = publish_now(db, post, account, registry, token_manager)
    return PublishResponse(
        success=True, platform_post_id=outcome.platform_post_id, message="Post published successfully"
    )

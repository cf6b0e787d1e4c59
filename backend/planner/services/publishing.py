import logging
import uuid
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from planner.core.exceptions import AccountNotFound, InvalidTransition, PlannerError, PublishFailed
from planner.core.timeutils import utcnow
from planner.models.post import Post, PostStatus
from planner.models.social_account import SocialAccount
from planner.services.post_state import check_account_platform, check_transition, transition
from planner.services.tokens import TokenManager
from planner.social.base import PublishResult, PublishTarget
from planner.social.registry import AdapterRegistry

logger = logging.getLogger(__name__)


@dataclass
class PublishOutcome:
    post_id: int
    success: bool
    platform_post_id: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return {key: value for key, value in asdict(self).items() if value is not None}


def claim_post(db: Session, post_id: int, from_statuses: Iterable[PostStatus]) -> Optional[str]:
    """
    Move a post to ``publishing`` with a single conditional UPDATE.

    Returns the idempotency key stamped on the post, or None when the row was
    not in one of ``from_statuses`` any more (another worker won the claim).
    The claim is committed before the caller makes any provider call.
    """
    attempt_key = uuid.uuid4().hex
    updated = (
        db.query(Post)
        .filter(Post.id == post_id, Post.status.in_(list(from_statuses)))
        .update(
            {Post.status: PostStatus.PUBLISHING, Post.idempotency_key: attempt_key},
            synchronize_session=False,
        )
    )
    db.commit()
    return attempt_key if updated == 1 else None


def publish_claimed_post(
    post: Post,
    registry: AdapterRegistry,
    token_manager: TokenManager,
    account: Optional[SocialAccount] = None,
) -> PublishResult:
    account = account or post.social_account
    if account is None:
        raise AccountNotFound(f"Post {post.id} has no social account attached")
    check_account_platform(post, account)

    adapter = registry.get(post.platform)
    target = PublishTarget.from_account(account)
    # Content problems surface before any token refresh
    adapter.check_publishable(post.media_url, target)

    access_token = token_manager.ensure_valid_token(account)
    return adapter.publish(
        access_token,
        post.content,
        post.media_url,
        target=target,
        idempotency_key=post.idempotency_key,
    )


def record_success(db: Session, post: Post, result: PublishResult, now: Optional[datetime] = None) -> None:
    transition(post, PostStatus.PUBLISHED)
    post.published_at = now or utcnow()
    post.platform_post_id = result.platform_post_id
    post.last_error = None
    db.commit()
    logger.info("Post %s published as %s on %s.", post.id, result.platform_post_id, post.platform.value)


def record_failure(db: Session, post: Post, error: str, revert_to: PostStatus, max_attempts: int = 0) -> None:
    post.publish_attempts = (post.publish_attempts or 0) + 1
    post.last_error = error
    if max_attempts and post.publish_attempts >= max_attempts:
        transition(post, PostStatus.FAILED)
        logger.error("Post %s failed %d times, giving up: %s", post.id, post.publish_attempts, error)
    else:
        # scheduled_at is left alone so the next sweep picks the post up again
        transition(post, revert_to)
        logger.warning("Post %s publish attempt %d failed: %s", post.id, post.publish_attempts, error)
    db.commit()


def publish_now(
    db: Session,
    post: Post,
    account: SocialAccount,
    registry: AdapterRegistry,
    token_manager: Optional[TokenManager] = None,
) -> PublishOutcome:
    """
    User-triggered publish through the same claim/publish/write-back steps the
    reconciler uses. On failure the post returns to the status it had before
    the claim and the adapter error is raised to the caller.
    """
    check_account_platform(post, account)
    previous_status = post.status
    check_transition(previous_status, PostStatus.PUBLISHING)

    if claim_post(db, post.id, [previous_status]) is None:
        raise InvalidTransition("Post is already being published")

    db.refresh(post)
    post.social_account_id = account.id
    token_manager = token_manager or TokenManager(db, registry)
    try:
        result = publish_claimed_post(post, registry, token_manager, account)
    except Exception as exc:
        db.rollback()
        record_failure(db, post, str(exc), revert_to=previous_status)
        if isinstance(exc, PlannerError):
            raise
        raise PublishFailed(str(exc)) from exc

    record_success(db, post, result)
    return PublishOutcome(post_id=post.id, success=True, platform_post_id=result.platform_post_id)

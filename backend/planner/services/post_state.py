"""
Post workflow: which status changes are legal and what each one requires.

    draft <-> pending -> approved          (approval workflow)
    draft/pending/approved/failed -> scheduled
    scheduled -> publishing                (reconciler claim)
    draft/pending/approved/failed -> publishing   (manual publish claim)
    publishing -> published | scheduled | failed | <status before a manual claim>
    published -> nothing
"""
from datetime import datetime
from typing import Optional

from planner.core.exceptions import InvalidTransition, PlatformMismatch, PostImmutable, ScheduleInPast
from planner.core.timeutils import to_naive_utc, utcnow
from planner.models.post import Post, PostStatus
from planner.models.social_account import SocialAccount

S = PostStatus

ALLOWED_TRANSITIONS = {
    S.DRAFT: {S.PENDING, S.SCHEDULED, S.PUBLISHING},
    S.PENDING: {S.DRAFT, S.APPROVED, S.SCHEDULED, S.PUBLISHING},
    S.APPROVED: {S.DRAFT, S.SCHEDULED, S.PUBLISHING},
    S.SCHEDULED: {S.DRAFT, S.PUBLISHING},
    S.PUBLISHING: {S.PUBLISHED, S.SCHEDULED, S.FAILED, S.DRAFT, S.PENDING, S.APPROVED},
    S.FAILED: {S.DRAFT, S.SCHEDULED, S.PUBLISHING},
    S.PUBLISHED: set(),
}

# Statuses a user can move a post between directly
WORKFLOW_STATUSES = {S.DRAFT, S.PENDING, S.APPROVED}

# Statuses a manual publish may claim from
MANUAL_PUBLISH_FROM = (S.DRAFT, S.PENDING, S.APPROVED, S.SCHEDULED, S.FAILED)


def check_transition(current: PostStatus, target: PostStatus) -> None:
    current, target = PostStatus(current), PostStatus(target)
    if current == S.PUBLISHED:
        raise PostImmutable("Published posts cannot be changed")
    if target not in ALLOWED_TRANSITIONS[current]:
        raise InvalidTransition(f"Cannot move a post from {current.value} to {target.value}")


def transition(post: Post, target: PostStatus) -> Post:
    check_transition(post.status, target)
    post.status = PostStatus(target)
    return post


def request_workflow_transition(post: Post, target: PostStatus) -> Post:
    """Approval workflow moves requested by users. Scheduling and publishing have their own entry points."""
    target = PostStatus(target)
    if post.status == S.PUBLISHED:
        raise PostImmutable("Published posts cannot be changed")
    if target not in WORKFLOW_STATUSES:
        raise InvalidTransition(f"Cannot move a post to {target.value} directly")
    return transition(post, target)


def ensure_editable(post: Post) -> None:
    if post.status == S.PUBLISHED:
        raise PostImmutable("Cannot edit published posts")
    if post.status == S.PUBLISHING:
        raise InvalidTransition("Post is being published")


def check_account_platform(post: Post, account: Optional[SocialAccount]) -> None:
    if account is not None and account.platform != post.platform:
        raise PlatformMismatch(
            f"Account platform ({account.platform.value}) does not match post platform ({post.platform.value})"
        )


def schedule(post: Post, account: SocialAccount, scheduled_at: datetime, now: Optional[datetime] = None) -> Post:
    check_transition(post.status, S.SCHEDULED)
    check_account_platform(post, account)

    scheduled_at = to_naive_utc(scheduled_at)
    if scheduled_at <= (now or utcnow()):
        raise ScheduleInPast("Scheduled time must be in the future")

    post.status = S.SCHEDULED
    post.scheduled_at = scheduled_at
    post.social_account_id = account.id
    post.social_account = account
    return post

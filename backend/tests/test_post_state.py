from datetime import timedelta, timezone

import pytest

from planner.core.exceptions import InvalidTransition, PlatformMismatch, PostImmutable, ScheduleInPast
from planner.core.timeutils import utcnow
from planner.models.post import PostStatus
from planner.models.social_account import Platform
from planner.services import post_state


def test_published_post_accepts_no_transition(make_post):
    post = make_post(status=PostStatus.PUBLISHED)
    for target in PostStatus:
        with pytest.raises(PostImmutable):
            post_state.transition(post, target)
    assert post.status == PostStatus.PUBLISHED


def test_published_post_cannot_be_edited(make_post):
    with pytest.raises(PostImmutable):
        post_state.ensure_editable(make_post(status=PostStatus.PUBLISHED))


def test_publishing_post_cannot_be_edited(make_post):
    with pytest.raises(InvalidTransition):
        post_state.ensure_editable(make_post(status=PostStatus.PUBLISHING))


@pytest.mark.parametrize("current,target", [
    (PostStatus.DRAFT, PostStatus.PENDING),
    (PostStatus.PENDING, PostStatus.APPROVED),
    (PostStatus.PENDING, PostStatus.DRAFT),
    (PostStatus.APPROVED, PostStatus.DRAFT),
    (PostStatus.SCHEDULED, PostStatus.DRAFT),
    (PostStatus.FAILED, PostStatus.DRAFT),
])
def test_workflow_moves(make_post, current, target):
    post = make_post(status=current)
    post_state.request_workflow_transition(post, target)
    assert post.status == target


@pytest.mark.parametrize("target", [PostStatus.PUBLISHED, PostStatus.PUBLISHING, PostStatus.SCHEDULED])
def test_workflow_cannot_jump_to_pipeline_statuses(make_post, target):
    with pytest.raises(InvalidTransition):
        post_state.request_workflow_transition(make_post(status=PostStatus.APPROVED), target)


def test_draft_cannot_skip_review(make_post):
    with pytest.raises(InvalidTransition):
        post_state.transition(make_post(status=PostStatus.DRAFT), PostStatus.APPROVED)


def test_publishing_to_scheduled_keeps_scheduled_at(make_post):
    due = utcnow() - timedelta(minutes=3)
    post = make_post(status=PostStatus.SCHEDULED, scheduled_at=due)

    post_state.transition(post, PostStatus.PUBLISHING)
    post_state.transition(post, PostStatus.SCHEDULED)

    assert post.status == PostStatus.SCHEDULED
    assert post.scheduled_at == due


# =============================================================================
# schedule
# =============================================================================

def test_schedule_sets_time_and_account(make_post, make_account):
    account = make_account(Platform.LINKEDIN)
    post = make_post(Platform.LINKEDIN, status=PostStatus.APPROVED)
    when = utcnow() + timedelta(hours=1)

    post_state.schedule(post, account, when)

    assert post.status == PostStatus.SCHEDULED
    assert post.scheduled_at == when
    assert post.social_account_id == account.id


def test_schedule_normalizes_aware_datetimes(make_post, make_account):
    account = make_account()
    post = make_post()
    when = (utcnow() + timedelta(hours=2)).replace(tzinfo=timezone.utc).astimezone(timezone(timedelta(hours=5)))

    post_state.schedule(post, account, when)

    assert post.scheduled_at.tzinfo is None
    assert post.scheduled_at == when.astimezone(timezone.utc).replace(tzinfo=None)


def test_schedule_in_past_is_rejected(make_post, make_account):
    post = make_post()

    with pytest.raises(ScheduleInPast):
        post_state.schedule(post, make_account(), utcnow() - timedelta(seconds=1))
    assert post.status == PostStatus.DRAFT
    assert post.scheduled_at is None


def test_schedule_with_wrong_platform_account(make_post, make_account):
    post = make_post(Platform.TWITTER)

    with pytest.raises(PlatformMismatch):
        post_state.schedule(post, make_account(Platform.FACEBOOK), utcnow() + timedelta(hours=1))
    assert post.status == PostStatus.DRAFT


def test_scheduled_post_must_go_back_to_draft_before_rescheduling(make_post, make_account):
    post = make_post(status=PostStatus.SCHEDULED, scheduled_at=utcnow() + timedelta(hours=1))

    with pytest.raises(InvalidTransition):
        post_state.schedule(post, make_account(), utcnow() + timedelta(hours=3))


def test_failed_post_can_be_rescheduled(make_post, make_account):
    post = make_post(status=PostStatus.FAILED)
    post_state.schedule(post, make_account(), utcnow() + timedelta(hours=1))
    assert post.status == PostStatus.SCHEDULED

from datetime import timedelta

import httpx
import pytest

from planner.core.exceptions import InvalidTransition, PlatformMismatch, PostImmutable, PublishFailed
from planner.core.timeutils import utcnow
from planner.models.post import Post, PostStatus
from planner.models.social_account import Platform
from planner.models.user import User
from planner.services.publishing import claim_post, publish_now
from planner.services import reconciler
from planner.services.reconciler import find_due_post_ids, reconcile_due_posts
from planner.social.instagram import InstagramAdapter
from planner.social.registry import AdapterRegistry


def due(minutes: int = 1):
    return utcnow() - timedelta(minutes=minutes)


# =============================================================================
# Sweep
# =============================================================================

def test_batch_with_one_success_and_two_failures(db, registry, adapters, make_account, make_post):
    adapters[Platform.LINKEDIN].publish_error = PublishFailed("linkedin said no")
    twitter = make_account(Platform.TWITTER)
    linkedin = make_account(Platform.LINKEDIN)
    # expired with nothing to refresh it with
    facebook = make_account(Platform.FACEBOOK, expires_in=-timedelta(minutes=5), refresh_token=None)

    ok = make_post(Platform.TWITTER, PostStatus.SCHEDULED, twitter, scheduled_at=due(3))
    rejected = make_post(Platform.LINKEDIN, PostStatus.SCHEDULED, linkedin, scheduled_at=due(2))
    stale = make_post(Platform.FACEBOOK, PostStatus.SCHEDULED, facebook, scheduled_at=due(1))
    rejected_at, stale_at = rejected.scheduled_at, stale.scheduled_at

    report = reconcile_due_posts(db, registry)

    assert report.processed == 3
    assert (report.succeeded, report.failed) == (1, 2)
    assert [outcome.post_id for outcome in report.results] == [ok.id, rejected.id, stale.id]

    db.refresh(ok)
    assert ok.status == PostStatus.PUBLISHED
    assert ok.platform_post_id == "twitter-post-1"
    assert ok.published_at is not None

    for post, scheduled_at in ((rejected, rejected_at), (stale, stale_at)):
        db.refresh(post)
        assert post.status == PostStatus.SCHEDULED
        assert post.scheduled_at == scheduled_at
        assert post.publish_attempts == 1
        assert post.last_error

    assert "linkedin said no" in rejected.last_error
    assert "no refresh token" in stale.last_error
    assert "no refresh token" in report.results[2].error
    assert adapters[Platform.FACEBOOK].publish_calls == []


def test_report_serializes_like_the_cron_response(db, registry, adapters, make_account, make_post):
    adapters[Platform.TWITTER].publish_error = PublishFailed("over capacity")
    post = make_post(Platform.TWITTER, PostStatus.SCHEDULED, make_account(), scheduled_at=due())

    payload = reconcile_due_posts(db, registry).to_dict()

    assert payload["processed"] == 1
    assert payload["results"][0]["post_id"] == post.id
    assert payload["results"][0]["success"] is False
    assert "over capacity" in payload["results"][0]["error"]


def test_future_and_unscheduled_posts_are_ignored(db, registry, adapters, make_account, make_post):
    account = make_account()
    make_post(status=PostStatus.SCHEDULED, account=account, scheduled_at=utcnow() + timedelta(hours=1))
    make_post(status=PostStatus.APPROVED, account=account)
    make_post(status=PostStatus.FAILED, account=account, scheduled_at=due())

    report = reconcile_due_posts(db, registry)

    assert report.processed == 0
    assert adapters[Platform.TWITTER].publish_calls == []


def test_batch_size_takes_oldest_first(db, registry, make_account, make_post):
    account = make_account()
    newest = make_post(status=PostStatus.SCHEDULED, account=account, scheduled_at=due(1))
    oldest = make_post(status=PostStatus.SCHEDULED, account=account, scheduled_at=due(30))
    middle = make_post(status=PostStatus.SCHEDULED, account=account, scheduled_at=due(10))

    assert find_due_post_ids(db, utcnow(), 2) == [oldest.id, middle.id]

    report = reconcile_due_posts(db, registry, batch_size=2)

    assert report.processed == 2
    db.refresh(newest)
    assert newest.status == PostStatus.SCHEDULED


def test_each_attempt_gets_its_own_idempotency_key(db, registry, adapters, make_account, make_post):
    adapter = adapters[Platform.TWITTER]
    adapter.publish_error = PublishFailed("try later")
    post = make_post(status=PostStatus.SCHEDULED, account=make_account(), scheduled_at=due())

    reconcile_due_posts(db, registry)
    reconcile_due_posts(db, registry)

    keys = [call["idempotency_key"] for call in adapter.publish_calls]
    assert len(keys) == 2
    assert all(keys) and keys[0] != keys[1]
    db.refresh(post)
    assert post.publish_attempts == 2


def test_max_attempts_moves_post_to_failed(db, registry, adapters, make_account, make_post):
    adapters[Platform.TWITTER].publish_error = PublishFailed("still broken")
    post = make_post(status=PostStatus.SCHEDULED, account=make_account(), scheduled_at=due())

    reconcile_due_posts(db, registry, max_attempts=2)
    db.refresh(post)
    assert post.status == PostStatus.SCHEDULED

    reconcile_due_posts(db, registry, max_attempts=2)
    db.refresh(post)
    assert post.status == PostStatus.FAILED
    assert post.publish_attempts == 2


def test_scheduled_post_without_account_is_reported(db, registry, make_post):
    post = make_post(status=PostStatus.SCHEDULED, scheduled_at=due())

    report = reconcile_due_posts(db, registry)

    assert report.failed == 1
    db.refresh(post)
    assert post.status == PostStatus.SCHEDULED


def test_post_claimed_elsewhere_is_skipped(db, registry, adapters, make_account, make_post):
    post = make_post(status=PostStatus.PUBLISHING, account=make_account(), scheduled_at=due())

    report = reconcile_due_posts(db, registry)

    assert report.processed == 0
    assert adapters[Platform.TWITTER].publish_calls == []
    db.refresh(post)
    assert post.status == PostStatus.PUBLISHING


def test_content_problems_fail_before_any_token_refresh(db, make_account, make_post):
    requests = []

    def route(request):
        requests.append(request)
        return httpx.Response(500, text="unexpected")

    registry = AdapterRegistry()
    registry.register(InstagramAdapter(
        "app", "secret", "http://api.test/api/auth/instagram/callback",
        httpx.Client(transport=httpx.MockTransport(route)),
    ))
    # expiring token: resolving it would call fb_exchange_token
    account = make_account(
        Platform.INSTAGRAM, expires_in=timedelta(minutes=1), refresh_token="long-lived",
        page_id="p1", page_access_token="page-token",
    )
    make_post(Platform.INSTAGRAM, PostStatus.SCHEDULED, account, scheduled_at=due())

    report = reconcile_due_posts(db, registry)

    assert report.failed == 1
    assert "requires an image" in report.results[0].error
    assert requests == []
    db.refresh(account)
    assert account.access_token == "access-token"


def test_failed_write_back_does_not_stop_the_batch(db, registry, make_account, make_post, monkeypatch):
    account = make_account()
    first = make_post(status=PostStatus.SCHEDULED, account=account, scheduled_at=due(5))
    second = make_post(status=PostStatus.SCHEDULED, account=account, scheduled_at=due(1))
    real_record_success = reconciler.record_success
    calls = []

    def flaky_record_success(db, post, result, now=None):
        calls.append(post.id)
        if len(calls) == 1:
            raise RuntimeError("database went away")
        return real_record_success(db, post, result, now)

    monkeypatch.setattr(reconciler, "record_success", flaky_record_success)

    report = reconcile_due_posts(db, registry)

    assert report.processed == 2
    assert [outcome.success for outcome in report.results] == [False, True]
    assert report.results[0].platform_post_id == "twitter-post-1"
    assert "database went away" in report.results[0].error
    db.refresh(first)
    db.refresh(second)
    # already live on the provider, so it is not put back in the queue
    assert first.status == PostStatus.PUBLISHING
    assert second.status == PostStatus.PUBLISHED


# =============================================================================
# Claim
# =============================================================================

def test_only_one_of_two_sessions_wins_the_claim(file_session_factory):
    setup = file_session_factory()
    user = User(email="claim@example.com", name="Claim")
    setup.add(user)
    setup.flush()
    post = Post(
        user_id=user.id, content="race", platform=Platform.TWITTER,
        status=PostStatus.SCHEDULED, scheduled_at=due(),
    )
    setup.add(post)
    setup.commit()
    post_id = post.id
    setup.close()

    first, second = file_session_factory(), file_session_factory()
    try:
        # both sweeps saw the post as due
        assert find_due_post_ids(first, utcnow(), 10) == [post_id]
        assert find_due_post_ids(second, utcnow(), 10) == [post_id]

        winner = claim_post(first, post_id, [PostStatus.SCHEDULED])
        loser = claim_post(second, post_id, [PostStatus.SCHEDULED])

        assert winner is not None
        assert loser is None
        assert second.get(Post, post_id).idempotency_key == winner
    finally:
        first.close()
        second.close()


# =============================================================================
# Manual publish
# =============================================================================

def test_publish_now_success(db, registry, adapters, make_account, make_post):
    account = make_account(Platform.LINKEDIN)
    post = make_post(Platform.LINKEDIN, PostStatus.APPROVED)

    outcome = publish_now(db, post, account, registry)

    assert outcome.success
    assert outcome.platform_post_id == "linkedin-post-1"
    db.refresh(post)
    assert post.status == PostStatus.PUBLISHED
    assert post.social_account_id == account.id
    assert adapters[Platform.LINKEDIN].publish_calls[0]["target"].platform_user_id == account.platform_user_id


def test_publish_now_failure_restores_previous_status(db, registry, adapters, make_account, make_post):
    adapters[Platform.LINKEDIN].publish_error = PublishFailed("rate limited")
    post = make_post(Platform.LINKEDIN, PostStatus.PENDING)

    with pytest.raises(PublishFailed, match="rate limited"):
        publish_now(db, post, make_account(Platform.LINKEDIN), registry)

    db.refresh(post)
    assert post.status == PostStatus.PENDING
    assert post.publish_attempts == 1
    assert "rate limited" in post.last_error


def test_publish_now_wraps_unexpected_errors(db, registry, adapters, make_account, make_post):
    adapters[Platform.TWITTER].publish_error = KeyError("id")
    post = make_post()

    with pytest.raises(PublishFailed):
        publish_now(db, post, make_account(), registry)
    db.refresh(post)
    assert post.status == PostStatus.DRAFT


def test_publish_now_rejects_published_and_mismatched(db, registry, make_account, make_post):
    with pytest.raises(PlatformMismatch):
        publish_now(db, make_post(Platform.TWITTER), make_account(Platform.FACEBOOK), registry)

    with pytest.raises(PostImmutable):
        publish_now(db, make_post(status=PostStatus.PUBLISHED), make_account(), registry)


def test_publish_now_refuses_a_post_already_publishing(db, registry, make_account, make_post):
    post = make_post(status=PostStatus.PUBLISHING)
    with pytest.raises(InvalidTransition):
        publish_now(db, post, make_account(), registry)

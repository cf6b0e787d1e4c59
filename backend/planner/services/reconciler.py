"""
Scheduled-publish sweep.

Invoked periodically (Celery beat or the cron endpoint). Each run claims up
to ``batch_size`` due posts, oldest first, and publishes them one by one.
The claim to ``publishing`` is the only concurrency guard: an overlapping
run that loses the conditional update simply skips the post.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from planner.core.config import settings
from planner.core.timeutils import utcnow
from planner.models.post import Post, PostStatus
from planner.services.publishing import (
    PublishOutcome,
    claim_post,
    publish_claimed_post,
    record_failure,
    record_success,
)
from planner.services.tokens import TokenManager
from planner.social.registry import AdapterRegistry

logger = logging.getLogger(__name__)


@dataclass
class ReconcileReport:
    processed: int = 0
    results: List[PublishOutcome] = field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if not r.success)

    def to_dict(self) -> dict:
        return {"processed": self.processed, "results": [r.to_dict() for r in self.results]}


def find_due_post_ids(db: Session, now: datetime, limit: int) -> List[int]:
    rows = (
        db.query(Post.id)
        .filter(
            Post.status == PostStatus.SCHEDULED,
            Post.scheduled_at.isnot(None),
            Post.scheduled_at <= now,
        )
        .order_by(Post.scheduled_at.asc())
        .limit(limit)
        .all()
    )
    return [row.id for row in rows]


def reconcile_due_posts(
    db: Session,
    registry: AdapterRegistry,
    now: Optional[datetime] = None,
    batch_size: Optional[int] = None,
    max_attempts: Optional[int] = None,
) -> ReconcileReport:
    now = now or utcnow()
    batch_size = batch_size or settings.RECONCILE_BATCH_SIZE
    max_attempts = settings.MAX_PUBLISH_ATTEMPTS if max_attempts is None else max_attempts
    token_manager = TokenManager(db, registry)
    report = ReconcileReport()

    for post_id in find_due_post_ids(db, now, batch_size):
        if claim_post(db, post_id, [PostStatus.SCHEDULED]) is None:
            logger.info("Post %s was claimed by another run, skipping.", post_id)
            continue

        report.processed += 1
        post = db.get(Post, post_id)
        try:
            result = publish_claimed_post(post, registry, token_manager)
        except Exception as exc:
            db.rollback()
            record_failure(db, post, str(exc), revert_to=PostStatus.SCHEDULED, max_attempts=max_attempts)
            report.results.append(PublishOutcome(post_id=post_id, success=False, error=str(exc)))
            continue

        try:
            record_success(db, post, result)
        except Exception as exc:
            db.rollback()
            # Left in publishing: the provider has the post, so a retry would duplicate it
            logger.exception(
                "Post %s went out as %s but its status could not be saved; it stays in publishing.",
                post_id, result.platform_post_id,
            )
            report.results.append(
                PublishOutcome(
                    post_id=post_id,
                    success=False,
                    platform_post_id=result.platform_post_id,
                    error=f"Published but status update failed: {exc}",
                )
            )
            continue

        report.results.append(
            PublishOutcome(post_id=post_id, success=True, platform_post_id=result.platform_post_id)
        )

    if report.processed:
        logger.info(
            "Reconciliation run finished: %d processed, %d published, %d failed.",
            report.processed, report.succeeded, report.failed,
        )
    return report

import logging

from celery.signals import after_setup_logger
from sqlalchemy.orm import Session

from .celery_app import celery_app
from planner.core.logging_config import LOG_FORMAT
from planner.db.session import SessionLocal
from planner.services.oauth_flow import OAuthFlowCoordinator
from planner.services.reconciler import reconcile_due_posts
from planner.social.registry import get_registry

logger = logging.getLogger(__name__)


@after_setup_logger.connect
def setup_worker_logging(logger, **kwargs):
    for handler in logger.handlers:
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logging.getLogger("httpx").setLevel(logging.WARNING)


@celery_app.task
def reconcile_scheduled_posts():
    """
    Periodic sweep that publishes every due scheduled post.
    Retries happen through the next sweep, never through Celery.
    """
    db: Session = SessionLocal()
    try:
        report = reconcile_due_posts(db, get_registry())
        return report.to_dict()
    finally:
        db.close()


@celery_app.task
def purge_expired_oauth_states():
    db: Session = SessionLocal()
    try:
        purged = OAuthFlowCoordinator(db, get_registry()).purge_expired()
        if purged:
            logger.info("[CELERY WORKER] Purged %d expired OAuth flow states.", purged)
        return purged
    finally:
        db.close()

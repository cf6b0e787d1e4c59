from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from planner.db.session import get_db
from planner.dependencies import require_cron_secret
from planner.services.reconciler import reconcile_due_posts
from planner.social.registry import AdapterRegistry, get_registry

router = APIRouter()

@router.api_route("/publish-scheduled", methods=["GET", "POST"], dependencies=[Depends(require_cron_secret)])
def publish_scheduled(db: Session = Depends(get_db), registry: AdapterRegistry = Depends(get_registry)):
    """Entry point for an external scheduler. Runs one reconciliation sweep."""
    return reconcile_due_posts(db, registry).to_dict()

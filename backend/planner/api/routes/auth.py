import logging
from typing import Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from planner.core.config import settings
from planner.core.exceptions import NoBusinessAccount, PlannerError
from planner.db.session import get_db
from planner.dependencies import get_current_user_required
from planner.models.user import User
from planner.services.oauth_flow import STATE_TTL, OAuthFlowCoordinator
from planner.social.registry import AdapterRegistry, get_registry

logger = logging.getLogger(__name__)

router = APIRouter()

STATE_COOKIE = "oauth_state"


def _back_to_app(params: dict) -> RedirectResponse:
    response = RedirectResponse(url=f"{settings.APP_BASE_URL}?{urlencode(params)}", status_code=status.HTTP_302_FOUND)
    response.delete_cookie(STATE_COOKIE, path="/", httponly=True, samesite="lax")
    return response


@router.get("/{platform}")
def start_oauth(
    platform: str,
    db: Session = Depends(get_db),
    registry: AdapterRegistry = Depends(get_registry),
    current_user: User = Depends(get_current_user_required),
):
    """Redirects the browser to the provider's consent screen."""
    coordinator = OAuthFlowCoordinator(db, registry)
    auth_url, state = coordinator.initiate(current_user.id, platform)

    response = RedirectResponse(url=auth_url, status_code=status.HTTP_302_FOUND)
    response.set_cookie(
        key=STATE_COOKIE,
        value=state,
        max_age=int(STATE_TTL.total_seconds()),
        path="/",
        httponly=True,
        samesite="lax",
    )
    return response


@router.get("/{platform}/callback")
def oauth_callback(
    platform: str,
    request: Request,
    code: Optional[str] = None,
    state: Optional[str] = None,
    error: Optional[str] = None,
    db: Session = Depends(get_db),
    registry: AdapterRegistry = Depends(get_registry),
):
    """
    Provider redirect target. Always lands back on the app with either
    ``connected``/``username`` or an ``error`` code, and always clears the
    state cookie.
    """
    if error:
        logger.warning("OAuth error for %s: %s", platform, error)
        return _back_to_app({"error": "oauth_denied"})
    if not code or not state:
        return _back_to_app({"error": "oauth_failed"})

    coordinator = OAuthFlowCoordinator(db, registry)
    try:
        account = coordinator.complete(platform, code, state, request.cookies.get(STATE_COOKIE, ""))
    except NoBusinessAccount:
        return _back_to_app({"error": "no_instagram_business_account"})
    except PlannerError as exc:
        logger.warning("OAuth callback failed for %s: %s", platform, exc)
        return _back_to_app({"error": "oauth_failed"})
    except Exception:
        db.rollback()
        logger.exception("Unexpected error completing %s OAuth callback", platform)
        return _back_to_app({"error": "oauth_failed"})

    return _back_to_app({"connected": account.platform.value, "username": account.platform_username or ""})

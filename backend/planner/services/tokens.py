import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from planner.core.exceptions import RefreshUnavailable, TokenRefreshFailed
from planner.core.timeutils import utcnow
from planner.models.social_account import SocialAccount
from planner.social.registry import AdapterRegistry

logger = logging.getLogger(__name__)

REFRESH_WINDOW = timedelta(minutes=5)


def expiry_from(expires_in: Optional[int], now: Optional[datetime] = None) -> Optional[datetime]:
    if not expires_in:
        return None
    return (now or utcnow()) + timedelta(seconds=int(expires_in))


def needs_refresh(account: SocialAccount, now: Optional[datetime] = None) -> bool:
    if account.token_expires_at is None:
        return False
    return account.token_expires_at <= (now or utcnow()) + REFRESH_WINDOW


class TokenManager:
    """Hands out usable access tokens, refreshing them when they are about to expire."""

    def __init__(self, db: Session, registry: AdapterRegistry):
        self.db = db
        self.registry = registry

    def ensure_valid_token(self, account: SocialAccount, now: Optional[datetime] = None) -> str:
        now = now or utcnow()
        if not needs_refresh(account, now):
            return account.access_token

        platform = account.platform.value
        if not account.refresh_token:
            raise RefreshUnavailable(f"Token expired and no refresh token available for {platform}")

        logger.info("Token for %s account %s is expiring. Attempting refresh.", platform, account.id)
        adapter = self.registry.get(account.platform)
        try:
            tokens = adapter.refresh_token(account.refresh_token)
        except TokenRefreshFailed:
            raise
        except Exception as exc:
            raise TokenRefreshFailed(f"{platform} token refresh failed: {exc}") from exc

        account.access_token = tokens.access_token
        # Some providers do not rotate the refresh token
        if tokens.refresh_token:
            account.refresh_token = tokens.refresh_token
        account.token_expires_at = expiry_from(tokens.expires_in, now)
        self.db.commit()

        logger.info("Token refreshed for %s account %s.", platform, account.id)
        return tokens.access_token

"""
OAuth connect flow: authorization redirect, callback verification and the
account upsert that follows a successful code exchange.

Flow state lives in the ``oauth_states`` table rather than process memory so
any API instance can finish a flow another instance started. The browser
holds only the opaque state token in a cookie.
"""
import base64
import hashlib
import logging
import secrets
from datetime import datetime, timedelta
from typing import Optional, Tuple

from sqlalchemy.orm import Session

from planner.core.exceptions import InvalidState
from planner.core.timeutils import utcnow
from planner.models.oauth_state import OAuthFlowState
from planner.models.social_account import Platform, SocialAccount
from planner.services.tokens import expiry_from
from planner.social.registry import AdapterRegistry

logger = logging.getLogger(__name__)

STATE_TTL = timedelta(minutes=10)


def generate_state() -> str:
    return secrets.token_hex(32)


def generate_code_verifier() -> str:
    return secrets.token_urlsafe(32)


def generate_code_challenge(verifier: str) -> str:
    digest = hashlib.sha256(verifier.encode("utf-8")).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("utf-8")


class OAuthFlowCoordinator:
    def __init__(self, db: Session, registry: AdapterRegistry):
        self.db = db
        self.registry = registry

    def initiate(self, user_id: int, platform) -> Tuple[str, str]:
        """Start a flow. Returns the provider consent URL and the state token."""
        adapter = self.registry.get(platform)
        state = generate_state()
        code_verifier = None
        code_challenge = None
        if adapter.requires_pkce:
            code_verifier = generate_code_verifier()
            code_challenge = generate_code_challenge(code_verifier)

        self.db.add(
            OAuthFlowState(
                state=state,
                platform=adapter.platform,
                user_id=user_id,
                code_verifier=code_verifier,
                created_at=utcnow(),
            )
        )
        self.db.commit()

        return adapter.build_authorization_url(state, code_challenge), state

    def complete(self, platform, code: str, state: str, cookie_state: Optional[str] = None) -> SocialAccount:
        adapter = self.registry.get(platform)
        if not state:
            raise InvalidState("Missing state parameter")
        if cookie_state is not None and not secrets.compare_digest(cookie_state, state):
            raise InvalidState("State does not match this browser session")

        flow = self._consume(state)
        if flow.platform != adapter.platform:
            raise InvalidState("State was issued for a different platform")
        if flow.created_at < utcnow() - STATE_TTL:
            raise InvalidState("Authorization request expired. Please try again.")

        tokens = adapter.exchange_code(code, flow.code_verifier)
        identity = adapter.fetch_identity(tokens.access_token)

        account = self._upsert_account(flow.user_id, adapter.platform, identity, tokens)
        logger.info(
            "Connected %s account %s (%s) for user %s",
            adapter.platform.value, identity.platform_user_id, identity.display_name, flow.user_id,
        )
        return account

    def _consume(self, state: str) -> OAuthFlowState:
        """Read and delete the flow state. Only one caller can win the delete."""
        flow = self.db.get(OAuthFlowState, state)
        if flow is None:
            raise InvalidState("Unknown or already used state")

        snapshot = OAuthFlowState(
            state=flow.state,
            platform=flow.platform,
            user_id=flow.user_id,
            code_verifier=flow.code_verifier,
            created_at=flow.created_at,
        )
        deleted = (
            self.db.query(OAuthFlowState)
            .filter(OAuthFlowState.state == state)
            .delete(synchronize_session=False)
        )
        self.db.commit()
        if deleted != 1:
            raise InvalidState("Unknown or already used state")
        return snapshot

    def _upsert_account(self, user_id: int, platform: Platform, identity, tokens) -> SocialAccount:
        expires_at = expiry_from(tokens.expires_in)
        account = (
            self.db.query(SocialAccount)
            .filter_by(user_id=user_id, platform=platform, platform_user_id=identity.platform_user_id)
            .first()
        )
        if account:
            account.access_token = tokens.access_token
            if tokens.refresh_token:
                account.refresh_token = tokens.refresh_token
            account.token_expires_at = expires_at
            account.page_id = identity.page_id
            account.page_access_token = identity.page_access_token
            account.platform_username = identity.display_name
        else:
            account = SocialAccount(
                user_id=user_id,
                platform=platform,
                platform_user_id=identity.platform_user_id,
                platform_username=identity.display_name,
                access_token=tokens.access_token,
                refresh_token=tokens.refresh_token,
                token_expires_at=expires_at,
                page_id=identity.page_id,
                page_access_token=identity.page_access_token,
            )
            self.db.add(account)

        self.db.commit()
        self.db.refresh(account)
        return account

    def purge_expired(self, now: Optional[datetime] = None) -> int:
        cutoff = (now or utcnow()) - STATE_TTL
        deleted = (
            self.db.query(OAuthFlowState)
            .filter(OAuthFlowState.created_at < cutoff)
            .delete(synchronize_session=False)
        )
        self.db.commit()
        return deleted

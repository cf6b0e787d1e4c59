import logging
from typing import List, Optional, Type

from planner.core.exceptions import (
    MissingPageIdentity,
    OAuthExchangeFailed,
    PlannerError,
    PublishFailed,
    TokenRefreshFailed,
)
from planner.models.social_account import Platform
from planner.social.base import Identity, PageIdentity, PlatformAdapter, PublishResult, PublishTarget, TokenSet

logger = logging.getLogger(__name__)

GRAPH_API_BASE = "https://graph.facebook.com/v18.0"
GRAPH_OAUTH_DIALOG = "https://www.facebook.com/v18.0/dialog/oauth"


class GraphAdapter(PlatformAdapter):
    """
    Shared Graph API login for Facebook and Instagram.

    Graph has no refresh tokens. The code exchange yields a short-lived user
    token (hours) which is swapped right away for a long-lived one (~60 days).
    That long-lived token is also returned as the refresh credential, so a
    later ``refresh_token`` call performs the same swap again.
    """

    authorize_url = GRAPH_OAUTH_DIALOG

    def exchange_code(self, code: str, code_verifier: Optional[str] = None) -> TokenSet:
        response = self._request(
            "GET",
            f"{GRAPH_API_BASE}/oauth/access_token",
            OAuthExchangeFailed,
            "token exchange",
            params={
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "redirect_uri": self.redirect_uri,
                "code": code,
            },
        )
        short_lived = response.json()["access_token"]
        return self._long_lived_token(short_lived, OAuthExchangeFailed)

    def refresh_token(self, refresh_token: str) -> TokenSet:
        return self._long_lived_token(refresh_token, TokenRefreshFailed)

    def _long_lived_token(self, token: str, error_cls: Type[PlannerError]) -> TokenSet:
        response = self._request(
            "GET",
            f"{GRAPH_API_BASE}/oauth/access_token",
            error_cls,
            "long-lived token exchange",
            params={
                "grant_type": "fb_exchange_token",
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "fb_exchange_token": token,
            },
        )
        payload = response.json()
        return TokenSet(
            access_token=payload["access_token"],
            refresh_token=payload["access_token"],
            expires_in=payload.get("expires_in"),
        )

    def _fetch_pages(self, access_token: str, fields: str) -> List[dict]:
        """Managed Pages that carry a Page token. Graph omits it when Page permissions were not granted."""
        response = self._request(
            "GET",
            f"{GRAPH_API_BASE}/me/accounts",
            OAuthExchangeFailed,
            "page lookup",
            params={"fields": fields, "access_token": access_token},
        )
        pages = []
        for page in response.json().get("data") or []:
            if not page.get("id") or not page.get("access_token"):
                logger.warning("Skipping %s Page %s without a Page access token", self.platform.value, page.get("id"))
                continue
            pages.append(page)
        return pages


class FacebookAdapter(GraphAdapter):
    """Posts to the first Facebook Page the user manages."""

    platform = Platform.FACEBOOK
    scopes = "pages_show_list,pages_read_engagement,pages_manage_posts"

    def fetch_identity(self, access_token: str) -> Identity:
        response = self._request(
            "GET",
            f"{GRAPH_API_BASE}/me",
            OAuthExchangeFailed,
            "profile lookup",
            params={"fields": "id,name", "access_token": access_token},
        )
        user = response.json()

        pages = [
            PageIdentity(page_id=page["id"], name=page.get("name", ""), access_token=page.get("access_token"))
            for page in self._fetch_pages(access_token, "id,name,access_token")
        ]
        identity = Identity(platform_user_id=user["id"], display_name=user.get("name", ""), pages=pages)
        if pages:
            # TODO: let the user pick a Page instead of defaulting to the first one
            identity.page_id = pages[0].page_id
            identity.page_access_token = pages[0].access_token
        return identity

    def check_publishable(self, media_url: Optional[str], target: PublishTarget) -> None:
        if not target.page_id or not target.page_access_token:
            raise MissingPageIdentity("Facebook Page not configured")

    def publish(
        self,
        access_token: str,
        content: str,
        media_url: Optional[str] = None,
        *,
        target: PublishTarget,
        idempotency_key: Optional[str] = None,
    ) -> PublishResult:
        self.check_publishable(media_url, target)

        if media_url:
            endpoint = f"{GRAPH_API_BASE}/{target.page_id}/photos"
            body = {"url": media_url, "caption": content, "access_token": target.page_access_token}
        else:
            endpoint = f"{GRAPH_API_BASE}/{target.page_id}/feed"
            body = {"message": content, "access_token": target.page_access_token}

        response = self._request("POST", endpoint, PublishFailed, "page post", json=body)
        payload = response.json()
        # Photo uploads return both the photo id and the feed story id
        post_id = payload.get("post_id") or payload["id"]
        logger.info("Published Facebook post %s (attempt key %s)", post_id, idempotency_key)
        return PublishResult(platform_post_id=post_id)

import logging
from typing import Optional

from planner.core.exceptions import OAuthExchangeFailed, PublishFailed, TokenRefreshFailed
from planner.models.social_account import Platform
from planner.social.base import Identity, PlatformAdapter, PublishResult, PublishTarget, TokenSet

logger = logging.getLogger(__name__)

TWITTER_API_BASE = "https://api.twitter.com/2"
TWITTER_OAUTH_BASE = "https://twitter.com/i/oauth2"
TWITTER_UPLOAD_URL = "https://upload.twitter.com/1.1/media/upload.json"


class TwitterAdapter(PlatformAdapter):
    """X (Twitter) API v2 with OAuth 2.0 Authorization Code + PKCE."""

    platform = Platform.TWITTER
    authorize_url = f"{TWITTER_OAUTH_BASE}/authorize"
    token_url = "https://api.twitter.com/2/oauth2/token"
    scopes = "tweet.read tweet.write users.read offline.access"
    requires_pkce = True

    def extra_authorization_params(self, code_challenge: Optional[str]) -> dict:
        if not code_challenge:
            raise ValueError("Twitter authorization requires a PKCE code challenge")
        return {"code_challenge": code_challenge, "code_challenge_method": "S256"}

    def exchange_code(self, code: str, code_verifier: Optional[str] = None) -> TokenSet:
        if not code_verifier:
            raise OAuthExchangeFailed("Missing code verifier for Twitter")
        response = self._request(
            "POST",
            self.token_url,
            OAuthExchangeFailed,
            "token exchange",
            data={
                "code": code,
                "grant_type": "authorization_code",
                "redirect_uri": self.redirect_uri,
                "code_verifier": code_verifier,
                "client_id": self.client_id,
            },
            # Client secret goes in Basic auth for confidential clients
            auth=(self.client_id, self.client_secret),
        )
        return self._token_set(response.json())

    def refresh_token(self, refresh_token: str) -> TokenSet:
        response = self._request(
            "POST",
            self.token_url,
            TokenRefreshFailed,
            "token refresh",
            data={
                "grant_type": "refresh_token",
                "refresh_token": refresh_token,
                "client_id": self.client_id,
            },
            auth=(self.client_id, self.client_secret),
        )
        return self._token_set(response.json())

    def fetch_identity(self, access_token: str) -> Identity:
        response = self._request(
            "GET",
            f"{TWITTER_API_BASE}/users/me",
            OAuthExchangeFailed,
            "profile lookup",
            headers={"Authorization": f"Bearer {access_token}"},
        )
        profile = response.json().get("data", {})
        if not profile.get("id"):
            raise OAuthExchangeFailed("Twitter profile id not found in API response.")
        return Identity(platform_user_id=profile["id"], display_name=profile.get("username", ""))

    def publish(
        self,
        access_token: str,
        content: str,
        media_url: Optional[str] = None,
        *,
        target: PublishTarget,
        idempotency_key: Optional[str] = None,
    ) -> PublishResult:
        tweet_body = {"text": content}
        if media_url:
            media_id = self._upload_media(access_token, media_url)
            tweet_body["media"] = {"media_ids": [media_id]}

        response = self._request(
            "POST",
            f"{TWITTER_API_BASE}/tweets",
            PublishFailed,
            "tweet",
            headers={"Authorization": f"Bearer {access_token}"},
            json=tweet_body,
        )
        tweet = response.json().get("data", {})
        logger.info("Published tweet %s (attempt key %s)", tweet.get("id"), idempotency_key)
        return PublishResult(platform_post_id=tweet["id"])

    def _upload_media(self, access_token: str, media_url: str) -> str:
        """Chunked INIT/APPEND/FINALIZE upload of a single image."""
        data, mime_type = self._download_media(media_url)
        headers = {"Authorization": f"Bearer {access_token}"}

        init = self._request(
            "POST",
            TWITTER_UPLOAD_URL,
            PublishFailed,
            "media upload INIT",
            headers=headers,
            data={"command": "INIT", "total_bytes": str(len(data)), "media_type": mime_type},
        )
        media_id = init.json()["media_id_string"]

        self._request(
            "POST",
            TWITTER_UPLOAD_URL,
            PublishFailed,
            "media upload APPEND",
            headers=headers,
            data={"command": "APPEND", "media_id": media_id, "segment_index": "0"},
            files={"media": ("media", data, mime_type)},
        )
        self._request(
            "POST",
            TWITTER_UPLOAD_URL,
            PublishFailed,
            "media upload FINALIZE",
            headers=headers,
            data={"command": "FINALIZE", "media_id": media_id},
        )
        return media_id

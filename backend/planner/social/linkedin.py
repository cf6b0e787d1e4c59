import logging
from typing import Optional

from planner.core.exceptions import OAuthExchangeFailed, PublishFailed, TokenRefreshFailed
from planner.models.social_account import Platform
from planner.social.base import Identity, PlatformAdapter, PublishResult, PublishTarget, TokenSet

logger = logging.getLogger(__name__)

LINKEDIN_API_BASE = "https://api.linkedin.com/v2"
LINKEDIN_OAUTH_BASE = "https://www.linkedin.com/oauth/v2"


class LinkedInAdapter(PlatformAdapter):
    """LinkedIn UGC Posts API with OpenID Connect sign-in."""

    platform = Platform.LINKEDIN
    authorize_url = f"{LINKEDIN_OAUTH_BASE}/authorization"
    scopes = "openid profile email w_member_social"

    def _api_headers(self, access_token: str) -> dict:
        return {
            "Authorization": f"Bearer {access_token}",
            "X-Restli-Protocol-Version": "2.0.0",
            # Newer LinkedIn APIs reject calls without a version header
            "LinkedIn-Version": "202309",
        }

    def exchange_code(self, code: str, code_verifier: Optional[str] = None) -> TokenSet:
        response = self._request(
            "POST",
            f"{LINKEDIN_OAUTH_BASE}/accessToken",
            OAuthExchangeFailed,
            "token exchange",
            data={
                "grant_type": "authorization_code",
                "code": code,
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "redirect_uri": self.redirect_uri,
            },
        )
        return self._token_set(response.json())

    def refresh_token(self, refresh_token: str) -> TokenSet:
        response = self._request(
            "POST",
            f"{LINKEDIN_OAUTH_BASE}/accessToken",
            TokenRefreshFailed,
            "token refresh",
            data={
                "grant_type": "refresh_token",
                "refresh_token": refresh_token,
                "client_id": self.client_id,
                "client_secret": self.client_secret,
            },
        )
        return self._token_set(response.json())

    def fetch_identity(self, access_token: str) -> Identity:
        # The OpenID userinfo endpoint is the one that works with the openid scopes
        response = self._request(
            "GET",
            f"{LINKEDIN_API_BASE}/userinfo",
            OAuthExchangeFailed,
            "profile lookup",
            headers={"Authorization": f"Bearer {access_token}"},
        )
        profile = response.json()
        sub_id = profile.get("sub")
        if not sub_id:
            raise OAuthExchangeFailed("LinkedIn profile 'sub' ID not found in API response.")

        name = " ".join(part for part in (profile.get("given_name"), profile.get("family_name")) if part)
        return Identity(platform_user_id=sub_id, display_name=name or profile.get("name", ""))

    def publish(
        self,
        access_token: str,
        content: str,
        media_url: Optional[str] = None,
        *,
        target: PublishTarget,
        idempotency_key: Optional[str] = None,
    ) -> PublishResult:
        author_urn = f"urn:li:person:{target.platform_user_id}"
        share_content = {
            "shareCommentary": {"text": content},
            "shareMediaCategory": "NONE",
        }
        if media_url:
            asset = self._upload_image(access_token, author_urn, media_url)
            share_content["shareMediaCategory"] = "IMAGE"
            share_content["media"] = [{"status": "READY", "media": asset}]

        post_body = {
            "author": author_urn,
            "lifecycleState": "PUBLISHED",
            "specificContent": {"com.linkedin.ugc.ShareContent": share_content},
            "visibility": {"com.linkedin.ugc.MemberNetworkVisibility": "PUBLIC"},
        }
        response = self._request(
            "POST",
            f"{LINKEDIN_API_BASE}/ugcPosts",
            PublishFailed,
            "post",
            headers=self._api_headers(access_token),
            json=post_body,
        )
        post_id = response.headers.get("x-restli-id")
        if not post_id and response.content:
            post_id = response.json().get("id")
        if not post_id:
            raise PublishFailed("LinkedIn did not return a post id")

        logger.info("Published LinkedIn post %s (attempt key %s)", post_id, idempotency_key)
        return PublishResult(platform_post_id=post_id)

    def _upload_image(self, access_token: str, author_urn: str, media_url: str) -> str:
        register = self._request(
            "POST",
            f"{LINKEDIN_API_BASE}/assets",
            PublishFailed,
            "image upload registration",
            params={"action": "registerUpload"},
            headers=self._api_headers(access_token),
            json={
                "registerUploadRequest": {
                    "recipes": ["urn:li:digitalmediaRecipe:feedshare-image"],
                    "owner": author_urn,
                    "serviceRelationships": [
                        {"relationshipType": "OWNER", "identifier": "urn:li:userGeneratedContent"}
                    ],
                }
            },
        )
        value = register.json()["value"]
        upload_url = value["uploadMechanism"]["com.linkedin.digitalmedia.uploading.MediaUploadHttpRequest"]["uploadUrl"]

        data, _ = self._download_media(media_url)
        self._request(
            "PUT",
            upload_url,
            PublishFailed,
            "image upload",
            headers={"Authorization": f"Bearer {access_token}", "Content-Type": "application/octet-stream"},
            content=data,
        )
        return value["asset"]

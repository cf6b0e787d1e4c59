import logging
import time
from typing import Callable, Optional

import httpx

from planner.core.exceptions import MissingMedia, MissingPageIdentity, NoBusinessAccount, PublishFailed
from planner.models.social_account import Platform
from planner.social.base import Identity, PageIdentity, PublishResult, PublishTarget
from planner.social.facebook import GRAPH_API_BASE, GraphAdapter

logger = logging.getLogger(__name__)

CONTAINER_FINISHED = "FINISHED"
CONTAINER_FAILED = ("ERROR", "EXPIRED")


class InstagramAdapter(GraphAdapter):
    """
    Instagram Graph API publishing for Business accounts linked to a Page.

    Publishing is two-phase: create a media container from an image URL,
    wait until Instagram has processed it, then publish the container.
    """

    platform = Platform.INSTAGRAM
    scopes = "instagram_basic,instagram_content_publish,pages_show_list,pages_read_engagement"

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        http_client: httpx.Client,
        poll_attempts: int = 10,
        poll_interval: float = 2.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        super().__init__(client_id, client_secret, redirect_uri, http_client)
        self.poll_attempts = poll_attempts
        self.poll_interval = poll_interval
        self.sleep = sleep

    def fetch_identity(self, access_token: str) -> Identity:
        pages = []
        for page in self._fetch_pages(access_token, "id,name,access_token,instagram_business_account{id,username}"):
            business = page.get("instagram_business_account")
            if not business:
                continue
            pages.append(
                PageIdentity(
                    page_id=page["id"],
                    name=page.get("name", ""),
                    access_token=page.get("access_token"),
                    business_account_id=business["id"],
                    business_username=business.get("username"),
                )
            )

        if not pages:
            raise NoBusinessAccount("No Instagram Business Account is linked to any of your Facebook Pages")

        selected = pages[0]
        return Identity(
            platform_user_id=selected.business_account_id,
            display_name=selected.business_username or "",
            page_id=selected.page_id,
            page_access_token=selected.access_token,
            pages=pages,
        )

    def check_publishable(self, media_url: Optional[str], target: PublishTarget) -> None:
        if not media_url:
            raise MissingMedia("Instagram requires an image")
        if not target.page_access_token:
            raise MissingPageIdentity("Instagram account not properly configured")

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

        page_token = target.page_access_token
        ig_user_id = target.platform_user_id

        container = self._request(
            "POST",
            f"{GRAPH_API_BASE}/{ig_user_id}/media",
            PublishFailed,
            "media container creation",
            params={"image_url": media_url, "caption": content, "access_token": page_token},
        )
        creation_id = container.json()["id"]

        self._wait_for_container(creation_id, page_token)

        published = self._request(
            "POST",
            f"{GRAPH_API_BASE}/{ig_user_id}/media_publish",
            PublishFailed,
            "media publish",
            params={"creation_id": creation_id, "access_token": page_token},
        )
        media_id = published.json()["id"]
        logger.info("Published Instagram media %s (attempt key %s)", media_id, idempotency_key)
        return PublishResult(platform_post_id=media_id)

    def _wait_for_container(self, creation_id: str, page_token: str) -> None:
        """Poll the container until processing finishes or the attempt budget runs out."""
        status_code = None
        for attempt in range(1, self.poll_attempts + 1):
            response = self._request(
                "GET",
                f"{GRAPH_API_BASE}/{creation_id}",
                PublishFailed,
                "media container status",
                params={"fields": "status_code", "access_token": page_token},
            )
            status_code = response.json().get("status_code")
            if status_code == CONTAINER_FINISHED:
                return
            if status_code in CONTAINER_FAILED:
                raise PublishFailed(f"Instagram media container {creation_id} failed processing: {status_code}")

            logger.debug("Container %s is %s (poll %d/%d)", creation_id, status_code, attempt, self.poll_attempts)
            if attempt < self.poll_attempts:
                self.sleep(self.poll_interval)

        raise PublishFailed(
            f"Instagram media container {creation_id} not ready after {self.poll_attempts} polls (last status {status_code})"
        )

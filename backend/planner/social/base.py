"""
Common contract for the platform adapters.

Each adapter wraps one provider's OAuth dance and publish call behind the
same five operations. Protocol differences (PKCE, Page indirection,
long-lived token swaps, two-phase media publishing) stay inside the
adapter; callers only ever see the dataclasses defined here.
"""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional, Tuple, Type
from urllib.parse import urlencode

import httpx

from planner.core.exceptions import PlannerError, PublishFailed
from planner.models.social_account import Platform

logger = logging.getLogger(__name__)


@dataclass
class TokenSet:
    access_token: str
    refresh_token: Optional[str] = None
    expires_in: Optional[int] = None


@dataclass
class PageIdentity:
    page_id: str
    name: str
    access_token: str
    business_account_id: Optional[str] = None
    business_username: Optional[str] = None


@dataclass
class Identity:
    platform_user_id: str
    display_name: str
    page_id: Optional[str] = None
    page_access_token: Optional[str] = None
    pages: List[PageIdentity] = field(default_factory=list)


@dataclass
class PublishTarget:
    """Where a post goes: the account's platform identity and optional Page."""
    platform_user_id: str
    page_id: Optional[str] = None
    page_access_token: Optional[str] = None

    @classmethod
    def from_account(cls, account) -> "PublishTarget":
        return cls(
            platform_user_id=account.platform_user_id,
            page_id=account.page_id,
            page_access_token=account.page_access_token,
        )


@dataclass
class PublishResult:
    platform_post_id: str


class PlatformAdapter(ABC):
    platform: Platform
    authorize_url: str
    scopes: str
    requires_pkce: bool = False

    def __init__(self, client_id: str, client_secret: str, redirect_uri: str, http_client: httpx.Client):
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.http = http_client

    def build_authorization_url(self, state: str, code_challenge: Optional[str] = None) -> str:
        params = {
            "response_type": "code",
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "scope": self.scopes,
            "state": state,
        }
        params.update(self.extra_authorization_params(code_challenge))
        return f"{self.authorize_url}?{urlencode(params)}"

    def extra_authorization_params(self, code_challenge: Optional[str]) -> dict:
        return {}

    @abstractmethod
    def exchange_code(self, code: str, code_verifier: Optional[str] = None) -> TokenSet:
        ...

    @abstractmethod
    def fetch_identity(self, access_token: str) -> Identity:
        ...

    @abstractmethod
    def refresh_token(self, refresh_token: str) -> TokenSet:
        ...

    def check_publishable(self, media_url: Optional[str], target: PublishTarget) -> None:
        """Raise when the post can never be published here. Makes no network calls."""

    @abstractmethod
    def publish(
        self,
        access_token: str,
        content: str,
        media_url: Optional[str] = None,
        *,
        target: PublishTarget,
        idempotency_key: Optional[str] = None,
    ) -> PublishResult:
        ...

    # --- helpers shared by the concrete adapters ---

    def _request(self, method: str, url: str, error_cls: Type[PlannerError], what: str, **kwargs) -> httpx.Response:
        """Send one provider call and raise ``error_cls`` with the raw body on any non-2xx."""
        try:
            response = self.http.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            raise error_cls(f"{self.platform.value} {what} failed: {exc}") from exc

        if response.is_error:
            logger.warning(
                "%s %s failed with status %s: %s", self.platform.value, what, response.status_code, response.text
            )
            err = error_cls(f"{self.platform.value} {what} failed: {response.text}")
            if hasattr(err, "provider_response"):
                err.provider_response = response.text
            raise err
        return response

    def _token_set(self, payload: dict) -> TokenSet:
        return TokenSet(
            access_token=payload["access_token"],
            refresh_token=payload.get("refresh_token"),
            expires_in=payload.get("expires_in"),
        )

    def _download_media(self, media_url: str) -> Tuple[bytes, str]:
        response = self._request("GET", media_url, PublishFailed, "media download")
        content_type = response.headers.get("content-type", "image/jpeg").split(";")[0]
        return response.content, content_type

from typing import Dict, Optional, Union

import httpx

from planner.core.config import settings
from planner.core.exceptions import UnsupportedPlatform
from planner.models.social_account import Platform
from planner.social.base import PlatformAdapter
from planner.social.facebook import FacebookAdapter
from planner.social.instagram import InstagramAdapter
from planner.social.linkedin import LinkedInAdapter
from planner.social.twitter import TwitterAdapter


class AdapterRegistry:
    """Looks up the adapter for a platform. Adding a platform is one ``register`` call."""

    def __init__(self):
        self._adapters: Dict[Platform, PlatformAdapter] = {}

    def register(self, adapter: PlatformAdapter) -> None:
        self._adapters[adapter.platform] = adapter

    def get(self, platform: Union[Platform, str]) -> PlatformAdapter:
        try:
            return self._adapters[Platform(platform)]
        except (KeyError, ValueError):
            value = platform.value if isinstance(platform, Platform) else platform
            raise UnsupportedPlatform(f"Unsupported platform: {value}")

    def __contains__(self, platform) -> bool:
        try:
            return Platform(platform) in self._adapters
        except ValueError:
            return False


def build_default_registry(http_client: Optional[httpx.Client] = None) -> AdapterRegistry:
    client = http_client or httpx.Client(timeout=settings.HTTP_TIMEOUT_SECONDS)
    registry = AdapterRegistry()
    registry.register(
        TwitterAdapter(settings.X_CLIENT_ID, settings.X_CLIENT_SECRET, settings.redirect_uri("twitter"), client)
    )
    registry.register(
        LinkedInAdapter(
            settings.LINKEDIN_CLIENT_ID, settings.LINKEDIN_CLIENT_SECRET, settings.redirect_uri("linkedin"), client
        )
    )
    registry.register(
        FacebookAdapter(
            settings.FACEBOOK_APP_ID, settings.FACEBOOK_APP_SECRET, settings.redirect_uri("facebook"), client
        )
    )
    # Instagram logs in through the same Facebook app
    registry.register(
        InstagramAdapter(
            settings.FACEBOOK_APP_ID,
            settings.FACEBOOK_APP_SECRET,
            settings.redirect_uri("instagram"),
            client,
            poll_attempts=settings.INSTAGRAM_POLL_ATTEMPTS,
            poll_interval=settings.INSTAGRAM_POLL_INTERVAL_SECONDS,
        )
    )
    return registry


_default_registry: Optional[AdapterRegistry] = None


def get_registry() -> AdapterRegistry:
    """FastAPI dependency and worker entry point for the process-wide registry."""
    global _default_registry
    if _default_registry is None:
        _default_registry = build_default_registry()
    return _default_registry

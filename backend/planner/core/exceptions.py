"""
Exception classes for the planner backend.

Every domain failure raised by the adapters, the OAuth flow, the token
manager and the post state machine derives from PlannerError so the API
layer can translate them in one place.
"""


class PlannerError(Exception):
    """Base exception for all planner errors."""
    status_code = 400

    def __init__(self, message: str = ""):
        super().__init__(message or self.__class__.__name__)
        self.message = message or self.__class__.__name__


class ConfigurationError(PlannerError):
    """Raised when a required setting is missing."""
    status_code = 500


class UnsupportedPlatform(PlannerError):
    """Raised when no adapter is registered for a platform."""
    pass


# =============================================================================
# OAuth Errors
# =============================================================================

class OAuthError(PlannerError):
    """Base exception for the OAuth connect flow."""
    pass


class OAuthExchangeFailed(OAuthError):
    """Raised when the provider rejects a code exchange or identity lookup."""

    def __init__(self, message: str = "", provider_response: str = ""):
        super().__init__(message)
        self.provider_response = provider_response


class InvalidState(OAuthError):
    """Raised when the callback state is unknown, expired, mismatched or already used."""
    pass


class NoBusinessAccount(OAuthError):
    """Raised when no Instagram Business Account is linked to any of the user's Pages."""
    pass


# =============================================================================
# Token Errors
# =============================================================================

class TokenError(PlannerError):
    """Base exception for access token lifecycle errors."""
    pass


class TokenRefreshFailed(TokenError):
    """Raised when the provider rejects a refresh."""
    pass


class RefreshUnavailable(TokenError):
    """Raised when a token is expiring and no refresh token is on file."""
    pass


# =============================================================================
# Post State Errors
# =============================================================================

class PostStateError(PlannerError):
    """Base exception for post workflow violations."""
    pass


class PlatformMismatch(PostStateError):
    """Raised when an account's platform differs from the post's platform."""
    pass


class ScheduleInPast(PostStateError):
    """Raised when a post is scheduled for a time that is not in the future."""
    pass


class PostImmutable(PostStateError):
    """Raised when a published post would be edited, deleted or transitioned."""
    pass


class InvalidTransition(PostStateError):
    """Raised for a status change the workflow does not allow."""
    pass


# =============================================================================
# Publish Errors
# =============================================================================

class PublishError(PlannerError):
    """Base exception for publish failures."""
    pass


class MissingMedia(PublishError):
    """Raised when the platform requires an image and none was supplied."""
    pass


class MissingPageIdentity(PublishError):
    """Raised when a Page id or Page token is required but absent."""
    pass


class PublishFailed(PublishError):
    """Raised when the provider rejects a publish call."""
    pass


# =============================================================================
# Lookup Errors
# =============================================================================

class NotFoundError(PlannerError):
    """Base exception for missing records."""
    status_code = 404


class AccountNotFound(NotFoundError):
    """Raised when a social account does not exist or is not owned by the caller."""
    pass


class PostNotFound(NotFoundError):
    """Raised when a post does not exist or is not owned by the caller."""
    pass


# =============================================================================
# Content Generation Errors
# =============================================================================

class ContentGenerationFailed(PlannerError):
    """Raised when the generation service fails or returns nothing usable."""
    status_code = 502

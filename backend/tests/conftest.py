"""
Shared test fixtures.

Provides an in-memory SQLite database, factories for users, accounts and
posts, a scriptable fake platform adapter, and a FastAPI TestClient wired to
both.
"""
import os

# Settings are read at import time, so the environment must be set first
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["CRON_SECRET"] = "test-cron-secret"
os.environ["APP_BASE_URL"] = "http://app.test"
os.environ["PUBLIC_SERVER_URL"] = "http://api.test"

from datetime import timedelta
from typing import Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from planner.core.security import create_access_token
from planner.core.timeutils import utcnow
from planner.db.init_db import init_db
from planner.db.session import get_db
from planner.models.post import Post, PostStatus
from planner.models.social_account import Platform, SocialAccount
from planner.models.user import User
from planner.social.base import Identity, PlatformAdapter, PublishResult, TokenSet
from planner.social.registry import AdapterRegistry, get_registry


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool
    )
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def file_session_factory(tmp_path):
    """Sessions on a SQLite file, so two sessions see each other only through commits."""
    engine = create_engine(f"sqlite:///{tmp_path / 'planner.db'}", connect_args={"check_same_thread": False})
    init_db(engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


# =============================================================================
# Data Factories
# =============================================================================

@pytest.fixture
def user(db) -> User:
    user = User(email="owner@example.com", name="Owner")
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def other_user(db) -> User:
    user = User(email="someone-else@example.com", name="Someone Else")
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def make_account(db, user):
    def _make(
        platform: Platform = Platform.TWITTER,
        owner: Optional[User] = None,
        platform_user_id: Optional[str] = None,
        access_token: str = "access-token",
        refresh_token: Optional[str] = "refresh-token",
        expires_in: Optional[timedelta] = timedelta(hours=2),
        page_id: Optional[str] = None,
        page_access_token: Optional[str] = None,
    ) -> SocialAccount:
        account = SocialAccount(
            user_id=(owner or user).id,
            platform=platform,
            platform_user_id=platform_user_id or f"{platform.value}-user",
            platform_username=f"{platform.value}_handle",
            access_token=access_token,
            refresh_token=refresh_token,
            token_expires_at=utcnow() + expires_in if expires_in is not None else None,
            page_id=page_id,
            page_access_token=page_access_token,
        )
        db.add(account)
        db.commit()
        db.refresh(account)
        return account
    return _make


@pytest.fixture
def make_post(db, user):
    def _make(
        platform: Platform = Platform.TWITTER,
        status: PostStatus = PostStatus.DRAFT,
        account: Optional[SocialAccount] = None,
        scheduled_at=None,
        content: str = "Hello from the planner",
        media_url: Optional[str] = None,
        owner: Optional[User] = None,
    ) -> Post:
        post = Post(
            user_id=(owner or user).id,
            content=content,
            platform=platform,
            status=status,
            scheduled_at=scheduled_at,
            media_url=media_url,
            social_account_id=account.id if account else None,
        )
        db.add(post)
        db.commit()
        db.refresh(post)
        return post
    return _make


# =============================================================================
# Adapter Fixtures
# =============================================================================

class FakeAdapter(PlatformAdapter):
    """Scriptable adapter that records every call instead of talking to a provider."""

    scopes = "fake.scope"

    def __init__(self, platform: Platform, requires_pkce: bool = False):
        super().__init__("client-id", "client-secret", f"http://api.test/api/auth/{platform.value}/callback", None)
        self.platform = platform
        self.requires_pkce = requires_pkce
        self.authorize_url = f"https://{platform.value}.example/authorize"

        self.tokens = TokenSet(access_token="new-access", refresh_token="new-refresh", expires_in=3600)
        self.identity = Identity(platform_user_id="ext-123", display_name="Display Name")
        self.refreshed = TokenSet(access_token="refreshed-access", refresh_token="refreshed-refresh", expires_in=7200)
        self.post_id = f"{platform.value}-post-1"

        self.exchange_error: Optional[Exception] = None
        self.identity_error: Optional[Exception] = None
        self.refresh_error: Optional[Exception] = None
        self.publish_error: Optional[Exception] = None

        self.exchange_calls = []
        self.refresh_calls = []
        self.publish_calls = []

    def extra_authorization_params(self, code_challenge):
        if code_challenge:
            return {"code_challenge": code_challenge, "code_challenge_method": "S256"}
        return {}

    def exchange_code(self, code, code_verifier=None):
        self.exchange_calls.append((code, code_verifier))
        if self.exchange_error:
            raise self.exchange_error
        return self.tokens

    def fetch_identity(self, access_token):
        if self.identity_error:
            raise self.identity_error
        return self.identity

    def refresh_token(self, refresh_token):
        self.refresh_calls.append(refresh_token)
        if self.refresh_error:
            raise self.refresh_error
        return self.refreshed

    def publish(self, access_token, content, media_url=None, *, target, idempotency_key=None):
        self.publish_calls.append(
            {"access_token": access_token, "content": content, "media_url": media_url,
             "target": target, "idempotency_key": idempotency_key}
        )
        if self.publish_error:
            raise self.publish_error
        return PublishResult(platform_post_id=self.post_id)


@pytest.fixture
def adapters():
    return {
        Platform.TWITTER: FakeAdapter(Platform.TWITTER, requires_pkce=True),
        Platform.LINKEDIN: FakeAdapter(Platform.LINKEDIN),
        Platform.FACEBOOK: FakeAdapter(Platform.FACEBOOK),
        Platform.INSTAGRAM: FakeAdapter(Platform.INSTAGRAM),
    }


@pytest.fixture
def registry(adapters) -> AdapterRegistry:
    registry = AdapterRegistry()
    for adapter in adapters.values():
        registry.register(adapter)
    return registry


# =============================================================================
# API Fixtures
# =============================================================================

@pytest.fixture
def client(db, registry):
    from planner.main import app

    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_registry] = lambda: registry
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers(user) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}

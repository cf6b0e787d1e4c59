import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt

from planner.core.config import settings
from planner.core.exceptions import ConfigurationError


def _secret_key() -> str:
    if not settings.SECRET_KEY:
        raise ConfigurationError("SECRET_KEY is not configured")
    return settings.SECRET_KEY


def create_access_token(user_id: int, expires_delta: Optional[timedelta] = None) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "exp": now + (expires_delta or timedelta(days=1)),
        "iat": now,
        "sub": str(user_id),  # PyJWT requires a string subject
    }
    return jwt.encode(payload, _secret_key(), algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> int:
    """Return the user id carried by a token. Raises jwt.PyJWTError when invalid."""
    payload = jwt.decode(token, _secret_key(), algorithms=[settings.ALGORITHM])
    return int(payload["sub"])


def verify_cron_secret(authorization: Optional[str]) -> bool:
    if not settings.CRON_SECRET or not authorization:
        return False
    return secrets.compare_digest(authorization, f"Bearer {settings.CRON_SECRET}")

from typing import Optional

import jwt
from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from planner.core.security import decode_access_token, verify_cron_secret
from planner.db.session import get_db
from planner.models.user import User
from planner.services.tokens import TokenManager
from planner.social.registry import AdapterRegistry, get_registry


def _token_from_request(request: Request) -> Optional[str]:
    # API clients send a header; browser navigations (OAuth start) carry the cookie
    raw = request.headers.get("Authorization") or request.cookies.get("access_token")
    if not raw:
        return None
    scheme, _, token = raw.partition(" ")
    if scheme.lower() != "bearer" or not token:
        return None
    return token


def get_current_user_required(request: Request, db: Session = Depends(get_db)) -> User:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    token = _token_from_request(request)
    if not token:
        raise credentials_exception
    try:
        user_id = decode_access_token(token)
    except (jwt.PyJWTError, KeyError, ValueError):
        raise credentials_exception

    user = db.get(User, user_id)
    if user is None:
        raise credentials_exception
    return user


def require_cron_secret(request: Request) -> None:
    if not verify_cron_secret(request.headers.get("Authorization")):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")


def get_token_manager(
    db: Session = Depends(get_db), registry: AdapterRegistry = Depends(get_registry)
) -> TokenManager:
    return TokenManager(db, registry)

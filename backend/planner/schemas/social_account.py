from pydantic import BaseModel
from datetime import datetime
from typing import Optional
from planner.models.social_account import Platform

class SocialAccountInDB(BaseModel):
    id: int
    platform: Platform
    platform_user_id: str
    platform_username: Optional[str] = None
    page_id: Optional[str] = None
    token_expires_at: Optional[datetime] = None
    token_expired: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

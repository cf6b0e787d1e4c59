from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel
from datetime import datetime
from typing import List, Optional
from planner.models.post import PostStatus
from planner.models.social_account import Platform

class CamelModel(BaseModel):
    """Request bodies accept camelCase (what the web client sends) as well as snake_case."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True

class PostCreate(CamelModel):
    content: str = Field(..., min_length=1)
    platform: Platform
    media_url: Optional[str] = None
    media_type: Optional[str] = None
    status: PostStatus = PostStatus.DRAFT
    social_account_id: Optional[int] = None

class PostUpdate(CamelModel):
    content: Optional[str] = Field(None, min_length=1)
    platform: Optional[Platform] = None
    media_url: Optional[str] = None
    media_type: Optional[str] = None
    social_account_id: Optional[int] = None

class StatusChangeRequest(CamelModel):
    status: PostStatus

class ScheduleRequest(CamelModel):
    post_id: int
    scheduled_at: datetime
    social_account_id: int

class PublishRequest(CamelModel):
    post_id: int
    account_id: int

class CommentCreate(CamelModel):
    author: str = Field(..., min_length=1)
    text: str = Field(..., min_length=1)

class CommentInDB(BaseModel):
    id: int
    author: str
    text: str
    created_at: datetime

    class Config:
        from_attributes = True

class PostInDB(BaseModel):
    id: int
    user_id: int
    content: str
    media_url: Optional[str] = None
    media_type: Optional[str] = None
    platform: Platform
    status: PostStatus
    scheduled_at: Optional[datetime] = None
    published_at: Optional[datetime] = None
    platform_post_id: Optional[str] = None
    social_account_id: Optional[int] = None
    account_username: Optional[str] = None
    publish_attempts: int = 0
    last_error: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    comments: List[CommentInDB] = []

    class Config:
        from_attributes = True

class PublishResponse(BaseModel):
    success: bool
    platform_post_id: Optional[str] = None
    message: str

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import func
from sqlalchemy.orm import Session
from typing import List

from planner.core.exceptions import InvalidTransition
from planner.db.session import get_db
from planner.models.user import User
from planner.models.post import Post, PostStatus
from planner.models.comment import Comment
from planner.schemas.post import (
    CommentCreate,
    CommentInDB,
    PostCreate,
    PostInDB,
    PostUpdate,
    ScheduleRequest,
    StatusChangeRequest,
)
from planner.dependencies import get_current_user_required
from planner.services import post_state
from planner.services.lookups import get_owned_account, get_owned_post


router = APIRouter()

@router.get("", response_model=List[PostInDB])
def list_posts(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user_required),
):
    return (
        db.query(Post)
        .filter(Post.user_id == current_user.id)
        .order_by(func.coalesce(Post.scheduled_at, Post.created_at).desc(), Post.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )

@router.post("", response_model=PostInDB, status_code=status.HTTP_201_CREATED)
def create_post(
    post_data: PostCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user_required),
):
    """
    Creates a post in one of the review statuses (draft, pending, approved).
    Scheduling and publishing go through their own endpoints.
    """
    if post_data.status not in post_state.WORKFLOW_STATUSES:
        raise InvalidTransition(f"New posts cannot start as {post_data.status.value}")

    new_post = Post(
        user_id=current_user.id,
        content=post_data.content,
        media_url=post_data.media_url,
        media_type=post_data.media_type,
        platform=post_data.platform,
        status=post_data.status,
    )
    if post_data.social_account_id is not None:
        account = get_owned_account(db, post_data.social_account_id, current_user.id)
        post_state.check_account_platform(new_post, account)
        new_post.social_account_id = account.id

    db.add(new_post)
    db.commit()
    db.refresh(new_post)
    return new_post

@router.post("/schedule", response_model=PostInDB)
def schedule_post(
    request: ScheduleRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user_required),
):
    post = get_owned_post(db, request.post_id, current_user.id)
    account = get_owned_account(db, request.social_account_id, current_user.id)
    post_state.schedule(post, account, request.scheduled_at)
    db.commit()
    db.refresh(post)
    return post

@router.get("/{post_id}", response_model=PostInDB)
def get_post(post_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user_required)):
    return get_owned_post(db, post_id, current_user.id)

@router.put("/{post_id}", response_model=PostInDB)
def update_post(
    post_id: int,
    changes: PostUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user_required),
):
    """Composer edits. Published posts are rejected with a 400."""
    post = get_owned_post(db, post_id, current_user.id)
    post_state.ensure_editable(post)

    for field, value in changes.model_dump(exclude_unset=True, exclude={"social_account_id"}).items():
        if value is not None:
            setattr(post, field, value)

    account = post.social_account
    if changes.social_account_id is not None:
        account = get_owned_account(db, changes.social_account_id, current_user.id)
        post.social_account_id = account.id
    post_state.check_account_platform(post, account)

    db.commit()
    db.refresh(post)
    return post

@router.post("/{post_id}/status", response_model=PostInDB)
def change_status(
    post_id: int,
    request: StatusChangeRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user_required),
):
    """Approval workflow: submit for review, approve, or send back to draft."""
    post = get_owned_post(db, post_id, current_user.id)
    post_state.request_workflow_transition(post, request.status)
    db.commit()
    db.refresh(post)
    return post

@router.post("/{post_id}/comments", response_model=CommentInDB, status_code=status.HTTP_201_CREATED)
def add_comment(
    post_id: int,
    comment_data: CommentCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user_required),
):
    post = get_owned_post(db, post_id, current_user.id)
    comment = Comment(post_id=post.id, author=comment_data.author, text=comment_data.text)
    db.add(comment)
    db.commit()
    db.refresh(comment)
    return comment

@router.delete("/{post_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_post(
    post_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user_required)
):
    """
    Deletes a specific post. Published posts stay.
    """
    post_to_delete = get_owned_post(db, post_id, current_user.id)
    post_state.ensure_editable(post_to_delete)

    db.delete(post_to_delete)
    db.commit()
    return

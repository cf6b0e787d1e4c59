from sqlalchemy.orm import Session

from planner.core.exceptions import AccountNotFound, PostNotFound
from planner.models.post import Post
from planner.models.social_account import SocialAccount


def get_owned_post(db: Session, post_id: int, user_id: int) -> Post:
    post = db.query(Post).filter(Post.id == post_id, Post.user_id == user_id).first()
    if not post:
        raise PostNotFound("Post not found")
    return post


def get_owned_account(db: Session, account_id: int, user_id: int) -> SocialAccount:
    account = (
        db.query(SocialAccount)
        .filter(SocialAccount.id == account_id, SocialAccount.user_id == user_id)
        .first()
    )
    if not account:
        raise AccountNotFound("Social account not found")
    return account

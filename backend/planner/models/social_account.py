from sqlalchemy.types import Text
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Enum, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import enum
from planner.db.session import Base
from planner.core.timeutils import utcnow

class Platform(str, enum.Enum):
    TWITTER = "twitter"
    LINKEDIN = "linkedin"
    FACEBOOK = "facebook"
    INSTAGRAM = "instagram"

class SocialAccount(Base):
    __tablename__ = "social_accounts"
    __table_args__ = (
        # Reconnecting the same external identity updates the existing row
        UniqueConstraint("user_id", "platform", "platform_user_id", name="uq_social_account_identity"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    platform = Column(Enum(Platform), nullable=False)

    # Long enough for a full URN (e.g. "urn:li:person:y3p7QW4Is_")
    platform_user_id = Column(String(255), nullable=False)
    platform_username = Column(String(255), nullable=True)

    access_token = Column(Text, nullable=False)
    refresh_token = Column(Text, nullable=True)
    token_expires_at = Column(DateTime, nullable=True)

    # Facebook and Instagram publish through a Page
    page_id = Column(String(255), nullable=True)
    page_access_token = Column(Text, nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    owner = relationship("User", back_populates="social_accounts")
    # Disconnecting nulls the reference on posts; the posts themselves stay
    posts = relationship("Post", back_populates="social_account")

    @property
    def token_expired(self) -> bool:
        return self.token_expires_at is not None and self.token_expires_at < utcnow()

    def __repr__(self):
        return f"<SocialAccount {self.platform.value}:{self.platform_user_id}>"

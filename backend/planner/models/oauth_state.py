from sqlalchemy import Column, Integer, String, DateTime, Enum
from planner.db.session import Base
from planner.models.social_account import Platform
from planner.core.timeutils import utcnow

class OAuthFlowState(Base):
    """In-flight authorization request, consumed exactly once by the callback."""
    __tablename__ = "oauth_states"

    state = Column(String(128), primary_key=True)
    platform = Column(Enum(Platform), nullable=False)
    user_id = Column(Integer, nullable=False)
    code_verifier = Column(String(128), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)

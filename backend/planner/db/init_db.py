from planner.db.session import Base, engine
# Every model must be imported before create_all so relationships resolve
from planner.models import user, social_account, post, comment, oauth_state  # noqa: F401


def init_db(bind=None):
    Base.metadata.create_all(bind=bind or engine)

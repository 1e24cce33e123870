"""SQLAlchemy models for the application (PostgreSQL)."""

from .base import Base
from .user import User
from .subscription import Subscription
from .subscription_plan import SubscriptionPlan
from .post import Post

__all__ = [
    "Base",
    "User",
    "Subscription",
    "SubscriptionPlan",
    "Post",
]

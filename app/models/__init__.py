"""SQLAlchemy ORM models."""

from app.models.base import Base
from app.models.subscription import Subscription
from app.models.user import User

__all__ = ["Base", "Subscription", "User"]

"""SQLAlchemy models."""
from models.base import Base, CreatedAtMixin, UUIDv7Mixin
from models.user import User
from models.collection import Collection
from models.bookmark import Bookmark
from models.web_session import WebSession

__all__ = [
    "Base",
    "Bookmark",
    "Collection",
    "CreatedAtMixin",
    "UUIDv7Mixin",
    "User",
    "WebSession",
]

"""FastAPI dependencies for injection."""
from core.auth import WebSessionContext, get_current_user, get_web_session
from core.config import get_settings
from core.csrf import require_csrf
from db.session import get_async_session

__all__ = [
    "WebSessionContext",
    "get_async_session",
    "get_current_user",
    "get_settings",
    "get_web_session",
    "require_csrf",
]

"""
Session-cookie authentication dependencies.

Every API request resolves a server-side web session from the session
cookie (creating an anonymous one on first contact). Handlers receive it as an
explicit `WebSessionContext` rather than reading hidden request state.
"""
from datetime import timedelta
from uuid import UUID

from fastapi import Depends, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import Settings, get_settings
from db.session import get_async_session
from models.user import User
from models.web_session import WebSession
from services import auth_service, session_service
from services.session_service import ResolvedSession


class WebSessionContext:
    """
    The request's session record plus control over the session cookie.

    Replacing the session (login, register) re-issues the cookie; clearing it
    (logout) expires the cookie in the browser.
    """

    def __init__(self, resolved: ResolvedSession, response: Response, settings: Settings) -> None:
        self._response = response
        self._settings = settings
        self.record: WebSession = resolved.record
        if resolved.needs_cookie:
            self._set_cookie(resolved.raw_id)

    @property
    def user_id(self) -> UUID | None:
        """Id of the logged-in user, or None for an anonymous session."""
        return self.record.user_id

    @property
    def csrf_token(self) -> str:
        """The anti-forgery token bound to this session."""
        return self.record.csrf_token

    @property
    def is_authenticated(self) -> bool:
        """Whether a user is logged in on this session."""
        return self.record.is_authenticated

    def replace(self, resolved: ResolvedSession) -> None:
        """Switch to a new (rotated) session and send its cookie."""
        self.record = resolved.record
        if resolved.needs_cookie:
            self._set_cookie(resolved.raw_id)

    def clear(self) -> None:
        """Tell the browser to drop the session cookie."""
        if "set-cookie" in self._response.headers:
            del self._response.headers["set-cookie"]
        self._response.delete_cookie(
            self._settings.session_cookie_name,
            path="/",
            secure=self._settings.session_cookie_secure,
            httponly=True,
            samesite="lax",
        )

    def _set_cookie(self, raw_id: str) -> None:
        # Only one session cookie per response; a rotation replaces the earlier value
        if "set-cookie" in self._response.headers:
            del self._response.headers["set-cookie"]
        self._response.set_cookie(
            self._settings.session_cookie_name,
            raw_id,
            max_age=self._settings.session_max_age_seconds,
            path="/",
            secure=self._settings.session_cookie_secure,
            httponly=True,
            samesite="lax",
        )


async def get_web_session(
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_async_session),
    settings: Settings = Depends(get_settings),
) -> WebSessionContext:
    """Resolve (or start) the session named by the request's cookie."""
    resolved = await session_service.get_or_create_session(
        db,
        request.cookies.get(settings.session_cookie_name),
        max_age=timedelta(days=settings.session_max_age_days),
    )
    return WebSessionContext(resolved, response, settings)


async def get_current_user(
    web_session: WebSessionContext = Depends(get_web_session),
    db: AsyncSession = Depends(get_async_session),
) -> User:
    """
    Dependency that returns the logged-in user.

    Raises:
        UnauthenticatedError: If the session is anonymous.
    """
    return await auth_service.get_current_user(db, web_session.record)

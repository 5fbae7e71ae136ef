"""Account and login endpoints."""
from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import (
    WebSessionContext,
    get_async_session,
    get_current_user,
    get_web_session,
    require_csrf,
)
from models.user import User
from schemas.base import MessageResponse
from schemas.user import (
    LoginRequest,
    PasswordResetRequest,
    RegisterRequest,
    ResetPasswordRequest,
    UserResponse,
    VerifyEmailResponse,
)
from services import auth_service

router = APIRouter(prefix="/auth", tags=["auth"], dependencies=[Depends(require_csrf)])

PASSWORD_RESET_ACK = "If an account exists with that email, a password reset link has been sent"


@router.post("/register", response_model=UserResponse, status_code=201)
async def register(
    data: RegisterRequest,
    background_tasks: BackgroundTasks,
    web_session: WebSessionContext = Depends(get_web_session),
    db: AsyncSession = Depends(get_async_session),
) -> UserResponse:
    """Create an account and log in as it."""
    user, resolved = await auth_service.register(
        db, web_session.record, data, background_tasks,
    )
    # The queued email carries a token that must be stored before it is sent
    await db.commit()
    web_session.replace(resolved)
    return UserResponse.model_validate(user)


@router.post("/login", response_model=UserResponse)
async def login(
    data: LoginRequest,
    web_session: WebSessionContext = Depends(get_web_session),
    db: AsyncSession = Depends(get_async_session),
) -> UserResponse:
    """Log in with username and password."""
    user, resolved = await auth_service.login(db, web_session.record, data)
    web_session.replace(resolved)
    return UserResponse.model_validate(user)


@router.post("/logout", response_model=MessageResponse)
async def logout(
    web_session: WebSessionContext = Depends(get_web_session),
    db: AsyncSession = Depends(get_async_session),
) -> MessageResponse:
    """Destroy the session. Succeeds even if not logged in."""
    await auth_service.logout(db, web_session.record)
    web_session.clear()
    return MessageResponse(message="Logged out successfully")


@router.get("/me", response_model=UserResponse)
async def get_me(current_user: User = Depends(get_current_user)) -> UserResponse:
    """Get the logged-in user."""
    return UserResponse.model_validate(current_user)


@router.get("/verify-email", response_model=VerifyEmailResponse)
async def verify_email(
    token: str = Query(min_length=1, max_length=255),
    db: AsyncSession = Depends(get_async_session),
) -> VerifyEmailResponse:
    """Confirm an email address with the token from the verification email."""
    user = await auth_service.verify_email(db, token)
    return VerifyEmailResponse(username=user.username)


@router.post("/request-password-reset", response_model=MessageResponse)
async def request_password_reset(
    data: PasswordResetRequest,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_async_session),
) -> MessageResponse:
    """Email a reset link. The answer is the same whether or not the email is registered."""
    await auth_service.request_password_reset(db, data.email, background_tasks)
    await db.commit()
    return MessageResponse(message=PASSWORD_RESET_ACK)


@router.post("/reset-password", response_model=MessageResponse)
async def reset_password(
    data: ResetPasswordRequest,
    db: AsyncSession = Depends(get_async_session),
) -> MessageResponse:
    """Set a new password using a reset token. Logs out every session of the user."""
    await auth_service.reset_password(db, data.token, data.new_password)
    return MessageResponse(message="Password has been reset successfully")

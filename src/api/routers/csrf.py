"""Anti-forgery token issuance."""
from fastapi import APIRouter, Depends

from api.dependencies import WebSessionContext, get_web_session
from schemas.user import CsrfTokenResponse

router = APIRouter(tags=["csrf"])


@router.get("/csrf-token", response_model=CsrfTokenResponse)
async def get_csrf_token(
    web_session: WebSessionContext = Depends(get_web_session),
) -> CsrfTokenResponse:
    """
    Return the session's CSRF token.

    Starts a session (and sets its cookie) if the client has none yet. The
    client echoes the token in the X-CSRF-Token header on every
    state-changing request.
    """
    return CsrfTokenResponse(csrf_token=web_session.csrf_token)

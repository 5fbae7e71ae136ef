"""Anti-forgery token check for state-changing requests."""
import logging

from fastapi import Depends, Request

from core.auth import WebSessionContext, get_web_session
from core.security import tokens_match
from services.exceptions import CsrfMismatchError

logger = logging.getLogger(__name__)

CSRF_HEADER_NAME = "X-CSRF-Token"
SAFE_METHODS = frozenset({"GET", "HEAD", "OPTIONS", "TRACE"})


async def require_csrf(
    request: Request,
    web_session: WebSessionContext = Depends(get_web_session),
) -> None:
    """
    Reject a state-changing request whose X-CSRF-Token header does not
    equal the session's token.

    Safe methods pass. A cross-site page can make the browser send the
    session cookie but cannot read the token, so it cannot set the header.

    Raises:
        CsrfMismatchError: If the header is absent or does not match.
    """
    if request.method in SAFE_METHODS:
        return
    if not tokens_match(request.headers.get(CSRF_HEADER_NAME), web_session.csrf_token):
        logger.warning("CSRF check failed for %s %s", request.method, request.url.path)
        raise CsrfMismatchError()

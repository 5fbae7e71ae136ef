"""Liveness probe for load balancers and uptime checks."""
import logging

from fastapi import APIRouter, Depends, Response
from sqlalchemy import select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import Executable

from api.dependencies import get_async_session
from models.web_session import WebSession
from schemas.base import CamelModel

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])

OK = "ok"
UNAVAILABLE = "unavailable"


class HealthResponse(CamelModel):
    """Overall status plus the two stores every authenticated request needs."""

    status: str
    database: str
    session_store: str


async def _probe(db: AsyncSession, statement: Executable, component: str) -> str:
    try:
        await db.execute(statement)
    except SQLAlchemyError:
        logger.exception("Health check: %s unavailable", component)
        await db.rollback()
        return UNAVAILABLE
    return OK


@router.get("/health", response_model=HealthResponse)
async def health(
    response: Response,
    db: AsyncSession = Depends(get_async_session),
) -> HealthResponse:
    """
    Report whether the service can take traffic.

    No session is resolved here, so probes never create session rows. Any
    unavailable component turns the answer into a 503.
    """
    database = await _probe(db, text("SELECT 1"), "database")
    session_store = (
        await _probe(db, select(WebSession.id).limit(1), "session store")
        if database == OK
        else UNAVAILABLE
    )
    healthy = database == session_store == OK
    if not healthy:
        response.status_code = 503
    return HealthResponse(
        status=OK if healthy else "degraded",
        database=database,
        session_store=session_store,
    )

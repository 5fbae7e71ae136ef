"""FastAPI application entry point."""
import logging
import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from api.routers import auth, bookmarks, collections, csrf, health
from core.config import get_settings
from core.csrf import CSRF_HEADER_NAME
from db.session import engine
from schemas.base import ErrorResponse
from services.exceptions import AppError
from services.payload import format_errors

logger = logging.getLogger(__name__)
request_logger = logging.getLogger("api.requests")

MAX_LOG_LINE_LENGTH = 150


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None]:
    """Manage application lifespan - startup and shutdown."""
    logging.basicConfig(
        level=app_settings.log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    yield
    await engine.dispose()


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint,
    ) -> Response:
        """Process request and add security headers to response."""
        response = await call_next(request)
        # HSTS: enforce HTTPS for 1 year, including subdomains
        response.headers["Strict-Transport-Security"] = (
            "max-age=31536000; includeSubDomains"
        )
        # Prevent MIME type sniffing
        response.headers["X-Content-Type-Options"] = "nosniff"
        # Prevent clickjacking - API shouldn't be framed
        response.headers["X-Frame-Options"] = "DENY"
        return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log one line per request: method, path, status, duration and any error message."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint,
    ) -> Response:
        """Time the request and log its outcome."""
        start = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception as e:
            # The 500 body is rendered outside this middleware, so log it here
            self._log(request, 500, start, type(e).__name__)
            raise
        self._log(
            request, response.status_code, start, getattr(request.state, "error_message", None),
        )
        return response

    @staticmethod
    def _log(request: Request, status_code: int, start: float, error: str | None) -> None:
        elapsed_ms = int((time.perf_counter() - start) * 1000)
        line = f"{request.method} {request.url.path} {status_code} in {elapsed_ms}ms"
        if error:
            line += f" :: error: {error}"
        if len(line) > MAX_LOG_LINE_LENGTH:
            line = line[:MAX_LOG_LINE_LENGTH - 1] + "…"
        request_logger.info(line)


def format_validation_errors(exc: RequestValidationError) -> str:
    """Flatten FastAPI's request validation errors into one message."""
    return format_errors(exc.errors())


app_settings = get_settings()

app = FastAPI(
    title="Bookmark Manager API",
    description="Personal bookmarks organized into collections, with session auth and CSRF protection.",  # noqa: E501
    version="0.1.0",
    lifespan=lifespan,
)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Render service-layer errors as {"error": message}."""
    request.state.error_message = exc.message
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(error=exc.message).model_dump(),
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed, missing or wrongly typed input is a 400, not FastAPI's default 422."""
    message = format_validation_errors(exc)
    request.state.error_message = message
    return JSONResponse(status_code=400, content=ErrorResponse(error=message).model_dump())


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Unknown routes, wrong methods and the like, in the same error shape."""
    request.state.error_message = str(exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(error=str(exc.detail)).model_dump(),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Log unexpected failures with their traceback; the client only sees a generic message."""
    logger.error(
        "Unhandled error on %s %s", request.method, request.url.path,
        exc_info=(type(exc), exc, exc.__traceback__),
    )
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(error="Internal server error").model_dump(),
    )


# Request logging middleware (innermost, sees the status the handlers produced)
app.add_middleware(RequestLoggingMiddleware)

# Security headers middleware (runs after CORS, adds headers to responses)
app.add_middleware(SecurityHeadersMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=app_settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", CSRF_HEADER_NAME],
)

app.include_router(health.router)
app.include_router(csrf.router)
app.include_router(auth.router)
app.include_router(collections.router)
app.include_router(bookmarks.router)

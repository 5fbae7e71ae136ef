"""Service layer for bookmark CRUD operations."""
import logging
from typing import Any
from urllib.parse import urlsplit
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import get_settings
from models.bookmark import Bookmark
from models.collection import Collection
from schemas.bookmark import BookmarkCreate, BookmarkUpdate
from services.exceptions import ImageFetchFailedError, InvalidUrlError
from services.image_fetch import (
    ImageFetchError,
    fetch_image_as_data_url,
    is_data_image,
    validate_data_image,
)
from services.ownership import get_owned_for_update
from services.payload import parse_payload

logger = logging.getLogger(__name__)

BOOKMARK_URL_SCHEMES = ("http", "https")
# Longest valid DNS name; also fits bookmarks.domain
MAX_HOSTNAME_LENGTH = 253


def derive_domain(url: str) -> str:
    """
    Extract the host part of a bookmark URL.

    Raises:
        InvalidUrlError: If the URL is not http(s), or its host is missing or too long.
    """
    try:
        parts = urlsplit(url.strip())
        hostname = parts.hostname
    except ValueError as e:
        raise InvalidUrlError() from e
    if parts.scheme.lower() not in BOOKMARK_URL_SCHEMES or not hostname:
        raise InvalidUrlError()
    if len(hostname) > MAX_HOSTNAME_LENGTH:
        raise InvalidUrlError()
    return hostname


async def resolve_favicon(value: str | None) -> str | None:
    """
    Turn a client-supplied favicon into the embedded blob that gets stored.

    Embedded `data:image/` values are checked in place; anything else is
    treated as a remote URL and fetched through the image fetch guard.

    Raises:
        ImageFetchFailedError: On any failure; the specific reason is only logged.
    """
    if value is None:
        return None

    settings = get_settings()
    try:
        if is_data_image(value):
            return validate_data_image(value, max_bytes=settings.image_max_bytes)
        return await fetch_image_as_data_url(
            value,
            timeout=settings.image_fetch_timeout,
            max_bytes=settings.image_max_bytes,
        )
    except ImageFetchError as e:
        logger.warning("Favicon rejected (%s): %s", type(e).__name__, e)
        raise ImageFetchFailedError() from e


async def create_bookmark(
    db: AsyncSession,
    user_id: UUID,
    data: BookmarkCreate,
) -> Bookmark:
    """
    Create a new bookmark.

    Args:
        db: Database session.
        user_id: User ID to create the bookmark for.
        data: Bookmark creation data. Its `domain` is ignored.

    Returns:
        The created bookmark, favicon already embedded.

    Raises:
        InvalidUrlError: If the URL has no host.
        NotFoundError: If collection_id names no collection.
        ForbiddenError: If collection_id names another user's collection.
        ImageFetchFailedError: If the favicon could not be resolved. Nothing is persisted.

    Note:
        Does not commit. Caller (session generator) handles commit at request end.
    """
    url = data.url.strip()
    domain = derive_domain(url)

    if data.collection_id is not None:
        # Row lock keeps the collection from being deleted until this insert commits
        await get_owned_for_update(db, Collection, data.collection_id, user_id, "Collection")

    favicon = await resolve_favicon(data.favicon)

    bookmark = Bookmark(
        user_id=user_id,
        collection_id=data.collection_id,
        url=url,
        title=data.title or domain,
        domain=domain,
        favicon=favicon,
        memo=data.memo,
    )
    db.add(bookmark)
    await db.flush()
    await db.refresh(bookmark)
    return bookmark


async def list_bookmarks(
    db: AsyncSession,
    user_id: UUID,
    collection_id: UUID | None = None,
    uncategorized: bool = False,
) -> list[Bookmark]:
    """
    Get a user's bookmarks, newest first.

    Args:
        db: Database session.
        user_id: Owner whose bookmarks are listed.
        collection_id: Only bookmarks in this collection.
        uncategorized: Only bookmarks with no collection. Ignored if collection_id is set.
    """
    query = select(Bookmark).where(Bookmark.user_id == user_id)
    if collection_id is not None:
        query = query.where(Bookmark.collection_id == collection_id)
    elif uncategorized:
        query = query.where(Bookmark.collection_id.is_(None))

    result = await db.execute(query.order_by(Bookmark.created_at.desc(), Bookmark.id.desc()))
    return list(result.scalars().all())


async def update_bookmark(
    db: AsyncSession,
    user_id: UUID,
    bookmark_id: UUID,
    data: BookmarkUpdate | dict[str, Any],
) -> Bookmark:
    """
    Update a bookmark's memo and/or favicon.

    Only fields present in the request are touched; an explicit null clears.
    A raw body is validated only after the bookmark is found and its owner
    checked.

    Raises:
        NotFoundError: If the bookmark does not exist.
        ForbiddenError: If another user owns it.
        ValidationError: If the body does not fit `BookmarkUpdate`.
        ImageFetchFailedError: If a new favicon could not be resolved.
    """
    bookmark = await get_owned_for_update(db, Bookmark, bookmark_id, user_id, "Bookmark")

    data = parse_payload(BookmarkUpdate, data)
    provided = data.model_fields_set
    if "favicon" in provided:
        bookmark.favicon = await resolve_favicon(data.favicon)
    if "memo" in provided:
        bookmark.memo = data.memo

    await db.flush()
    await db.refresh(bookmark)
    return bookmark


async def delete_bookmark(
    db: AsyncSession,
    user_id: UUID,
    bookmark_id: UUID,
) -> None:
    """
    Delete a bookmark.

    Raises:
        NotFoundError: If the bookmark does not exist.
        ForbiddenError: If another user owns it.
    """
    bookmark = await get_owned_for_update(db, Bookmark, bookmark_id, user_id, "Bookmark")
    await db.delete(bookmark)
    await db.flush()

"""Bookmark CRUD endpoints."""
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Body, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_async_session, get_current_user, require_csrf
from models.user import User
from schemas.base import MessageResponse
from schemas.bookmark import BookmarkCreate, BookmarkResponse
from services import bookmark_service
from services.exceptions import ValidationError

router = APIRouter(
    prefix="/bookmarks",
    tags=["bookmarks"],
    dependencies=[Depends(require_csrf)],
)

UNCATEGORIZED_VALUES = ("", "null")


@router.post("", response_model=BookmarkResponse, status_code=201)
async def create_bookmark(
    data: BookmarkCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
) -> BookmarkResponse:
    """Create a new bookmark. A favicon URL is fetched and stored embedded."""
    bookmark = await bookmark_service.create_bookmark(db, current_user.id, data)
    return BookmarkResponse.model_validate(bookmark)


@router.get("", response_model=list[BookmarkResponse])
async def list_bookmarks(
    collection_id: str | None = Query(
        default=None,
        alias="collectionId",
        description="Collection id; 'null' or empty for uncategorized; omit for all",
    ),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
) -> list[BookmarkResponse]:
    """List the current user's bookmarks, newest first."""
    if collection_id is None:
        bookmarks = await bookmark_service.list_bookmarks(db, current_user.id)
    elif collection_id.strip().lower() in UNCATEGORIZED_VALUES:
        bookmarks = await bookmark_service.list_bookmarks(db, current_user.id, uncategorized=True)
    else:
        try:
            parsed_id = UUID(collection_id)
        except ValueError as e:
            raise ValidationError("collectionId: Invalid collection id") from e
        bookmarks = await bookmark_service.list_bookmarks(
            db, current_user.id, collection_id=parsed_id,
        )
    return [BookmarkResponse.model_validate(b) for b in bookmarks]


@router.patch("/{bookmark_id}", response_model=BookmarkResponse)
async def update_bookmark(
    bookmark_id: UUID,
    body: Any = Body(..., description="Fields of BookmarkUpdate; validated after the owner check"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
) -> BookmarkResponse:
    """Update a bookmark's memo and/or favicon."""
    bookmark = await bookmark_service.update_bookmark(db, current_user.id, bookmark_id, body)
    return BookmarkResponse.model_validate(bookmark)


@router.delete("/{bookmark_id}", response_model=MessageResponse)
async def delete_bookmark(
    bookmark_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
) -> MessageResponse:
    """Delete a bookmark."""
    await bookmark_service.delete_bookmark(db, current_user.id, bookmark_id)
    return MessageResponse(message="Bookmark deleted")

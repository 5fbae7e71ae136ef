"""Collection CRUD endpoints."""
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Body, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_async_session, get_current_user, require_csrf
from models.user import User
from schemas.base import MessageResponse
from schemas.collection import CollectionCreate, CollectionResponse
from services import collection_service

router = APIRouter(
    prefix="/collections",
    tags=["collections"],
    dependencies=[Depends(require_csrf)],
)


@router.get("", response_model=list[CollectionResponse])
async def list_collections(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
) -> list[CollectionResponse]:
    """List the current user's collections."""
    collections = await collection_service.list_collections(db, current_user.id)
    return [CollectionResponse.model_validate(c) for c in collections]


@router.post("", response_model=CollectionResponse, status_code=201)
async def create_collection(
    data: CollectionCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
) -> CollectionResponse:
    """Create a new collection."""
    collection = await collection_service.create_collection(db, current_user.id, data)
    return CollectionResponse.model_validate(collection)


@router.patch("/{collection_id}", response_model=CollectionResponse)
async def update_collection(
    collection_id: UUID,
    body: Any = Body(..., description="Fields of CollectionUpdate; validated after the owner check"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
) -> CollectionResponse:
    """Rename a collection the current user owns."""
    collection = await collection_service.update_collection(
        db, current_user.id, collection_id, body,
    )
    return CollectionResponse.model_validate(collection)


@router.delete("/{collection_id}", response_model=MessageResponse)
async def delete_collection(
    collection_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
) -> MessageResponse:
    """Delete a collection. Its bookmarks become uncategorized."""
    await collection_service.delete_collection(db, current_user.id, collection_id)
    return MessageResponse(message="Collection deleted")

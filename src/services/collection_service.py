"""Service layer for collection CRUD operations."""
import logging
from typing import Any
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from models.bookmark import Bookmark
from models.collection import Collection
from schemas.collection import CollectionCreate, CollectionUpdate
from services.ownership import get_owned_for_update
from services.payload import parse_payload

logger = logging.getLogger(__name__)


async def list_collections(db: AsyncSession, user_id: UUID) -> list[Collection]:
    """Get all of a user's collections, oldest first (tab order)."""
    result = await db.execute(
        select(Collection)
        .where(Collection.user_id == user_id)
        .order_by(Collection.created_at, Collection.id),
    )
    return list(result.scalars().all())


async def create_collection(
    db: AsyncSession,
    user_id: UUID,
    data: CollectionCreate,
) -> Collection:
    """
    Create a new collection owned by `user_id`.

    Note:
        Does not commit. Caller (session generator) handles commit at request end.
    """
    collection = Collection(user_id=user_id, name=data.name)
    db.add(collection)
    await db.flush()
    await db.refresh(collection)
    return collection


async def update_collection(
    db: AsyncSession,
    user_id: UUID,
    collection_id: UUID,
    data: CollectionUpdate | dict[str, Any],
) -> Collection:
    """
    Rename a collection. Name is the only mutable field.

    Raises:
        NotFoundError: If the collection does not exist.
        ForbiddenError: If another user owns it.
        ValidationError: If the body does not fit `CollectionUpdate`. Checked
            after ownership.
    """
    collection = await get_owned_for_update(db, Collection, collection_id, user_id, "Collection")
    data = parse_payload(CollectionUpdate, data)
    if data.name is not None:
        collection.name = data.name
        await db.flush()
        await db.refresh(collection)
    return collection


async def delete_collection(
    db: AsyncSession,
    user_id: UUID,
    collection_id: UUID,
) -> int:
    """
    Delete a collection, detaching its bookmarks to uncategorized.

    Bookmarks are never deleted with their collection. The collection row is
    locked first, so a bookmark being created under it concurrently either
    lands before the detach (and is detached) or finds the collection gone.

    Returns:
        Number of bookmarks detached.

    Raises:
        NotFoundError: If the collection does not exist.
        ForbiddenError: If another user owns it.
    """
    collection = await get_owned_for_update(db, Collection, collection_id, user_id, "Collection")

    result = await db.execute(
        update(Bookmark)
        .where(Bookmark.collection_id == collection.id)
        .values(collection_id=None)
        .execution_options(synchronize_session="fetch"),
    )
    detached = result.rowcount or 0

    await db.delete(collection)
    await db.flush()
    logger.info(
        "Deleted collection %s of user %s; %d bookmarks detached",
        collection_id, user_id, detached,
    )
    return detached

"""Load-then-authorize helper shared by every update and delete path."""
from typing import TypeVar
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from models.bookmark import Bookmark
from models.collection import Collection
from services.exceptions import ForbiddenError, NotFoundError

OwnedT = TypeVar("OwnedT", Bookmark, Collection)


async def get_owned_for_update(
    db: AsyncSession,
    model: type[OwnedT],
    resource_id: UUID,
    user_id: UUID,
    entity_name: str,
) -> OwnedT:
    """
    Load a resource with a row lock and check that `user_id` owns it.

    The lock is held until the request's transaction ends, so the ownership
    check and the write that follows see the same row.

    Raises:
        NotFoundError: If no resource has this id.
        ForbiddenError: If the resource belongs to another user.
    """
    result = await db.execute(
        select(model).where(model.id == resource_id).with_for_update(),
    )
    resource = result.scalar_one_or_none()
    if resource is None:
        raise NotFoundError(entity_name)
    if resource.user_id != user_id:
        raise ForbiddenError()
    return resource

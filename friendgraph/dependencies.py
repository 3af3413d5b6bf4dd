import uuid

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from friendgraph.database import get_db
from friendgraph.models.user import User
from friendgraph.services.friendship_service import FriendshipService


async def get_current_user(
    x_user_id: uuid.UUID | None = Header(default=None),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Resolve the caller from the X-User-Id header set by the gateway."""
    if x_user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing X-User-Id header"
        )
    user = await db.get(User, x_user_id)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Unknown user"
        )
    return user


async def get_friendship_service(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> FriendshipService:
    return FriendshipService(db, request.app.state.pair_locks)

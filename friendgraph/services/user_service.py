import uuid
from collections.abc import Iterable

from sqlalchemy import case, func, intersect, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from friendgraph.models.base import utcnow
from friendgraph.models.friendship import Friendship
from friendgraph.models.user import User

PROFILE_FIELDS = (
    "id",
    "first_name",
    "last_name",
    "email",
    "profile_picture",
    "is_online",
    "last_seen_at",
)


def _friend_ids(user_id: uuid.UUID):
    """Select the other side of every friendship touching user_id."""
    return select(
        case(
            (Friendship.user_id_1 == user_id, Friendship.user_id_2),
            else_=Friendship.user_id_1,
        ).label("friend_id")
    ).where(
        or_(
            Friendship.user_id_1 == user_id,
            Friendship.user_id_2 == user_id,
        )
    )


def to_profile(user: User) -> dict:
    return {field: getattr(user, field) for field in PROFILE_FIELDS}


class SqlMutualFriendCounter:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def count(self, user_a: uuid.UUID, user_b: uuid.UUID) -> int:
        """Number of friends user_a and user_b have in common."""
        common = intersect(_friend_ids(user_a), _friend_ids(user_b)).subquery()
        result = await self.db.execute(select(func.count()).select_from(common))
        return result.scalar_one()


class SqlProfileResolver:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def resolve(self, ids: Iterable[uuid.UUID]) -> dict[uuid.UUID, dict]:
        ids = set(ids)
        if not ids:
            return {}
        result = await self.db.execute(select(User).where(User.id.in_(ids)))
        return {user.id: to_profile(user) for user in result.scalars().all()}


async def update_online_status(
    db: AsyncSession, user_id: uuid.UUID, is_online: bool
) -> bool:
    """Set the presence flag and last-seen time. Returns False for unknown users."""
    result = await db.execute(
        update(User)
        .where(User.id == user_id)
        .values(is_online=is_online, last_seen_at=utcnow())
    )
    await db.flush()
    return result.rowcount > 0

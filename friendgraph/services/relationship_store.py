import logging
import uuid
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from datetime import datetime

from sqlalchemy import and_, or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from friendgraph.exceptions import (
    AlreadyFriendsError,
    DuplicateRequestError,
    StorePersistenceError,
)
from friendgraph.models.base import utcnow
from friendgraph.models.friendship import Friendship, canonical_pair
from friendgraph.models.friendship_request import PENDING, FriendshipRequest
from friendgraph.models.user import User

logger = logging.getLogger(__name__)


@contextmanager
def _store_errors(action: str) -> Iterator[None]:
    """Wrap transport-level failures as StorePersistenceError.

    Integrity violations pass through untouched; the calling method decides
    which business error they mean.
    """
    try:
        yield
    except IntegrityError:
        raise
    except SQLAlchemyError as exc:
        logger.warning("Relationship store failed while %s: %s", action, exc)
        raise StorePersistenceError() from exc


def _between(col_a, col_b, user_a: uuid.UUID, user_b: uuid.UUID):
    return or_(
        and_(col_a == user_a, col_b == user_b),
        and_(col_a == user_b, col_b == user_a),
    )


class RelationshipStore:
    """Reads and writes friendship requests and friendships.

    One store wraps one AsyncSession, which is one unit of work. Nothing here
    commits on its own; callers decide when through ``commit``. Uniqueness is
    enforced by the table constraints and surfaces as AlreadyFriendsError or
    DuplicateRequestError after the unit of work has been rolled back. Any
    other integrity violation, such as an unknown user id, propagates as is.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    # ── Requests ─────────────────────────────────────────────────────

    async def get_request(self, request_id: int) -> FriendshipRequest | None:
        with _store_errors("loading a friend request"):
            return await self.db.get(FriendshipRequest, request_id)

    async def find_request(
        self,
        requester_id: uuid.UUID,
        receiver_id: uuid.UUID,
        statuses: Iterable[str] | None = None,
    ) -> FriendshipRequest | None:
        """Oldest request for the ordered pair, optionally limited to statuses."""
        query = select(FriendshipRequest).where(
            FriendshipRequest.requester_id == requester_id,
            FriendshipRequest.receiver_id == receiver_id,
        )
        if statuses is not None:
            query = query.where(FriendshipRequest.status.in_(tuple(statuses)))
        query = query.order_by(FriendshipRequest.id).limit(1)
        with _store_errors("looking up a friend request"):
            result = await self.db.execute(query)
        return result.scalars().first()

    async def find_requests_between(
        self,
        user_a: uuid.UUID,
        user_b: uuid.UUID,
        status: str | None = None,
        exclude_id: int | None = None,
    ) -> list[FriendshipRequest]:
        """Requests between two users in either direction."""
        query = select(FriendshipRequest).where(
            _between(
                FriendshipRequest.requester_id,
                FriendshipRequest.receiver_id,
                user_a,
                user_b,
            )
        )
        if status is not None:
            query = query.where(FriendshipRequest.status == status)
        if exclude_id is not None:
            query = query.where(FriendshipRequest.id != exclude_id)
        with _store_errors("looking up friend requests for a pair"):
            result = await self.db.execute(query.order_by(FriendshipRequest.id))
        return list(result.scalars().all())

    async def list_requests(
        self,
        *,
        requester_id: uuid.UUID | None = None,
        receiver_id: uuid.UUID | None = None,
        status: str | None = None,
    ) -> list[FriendshipRequest]:
        query = select(FriendshipRequest)
        if requester_id is not None:
            query = query.where(FriendshipRequest.requester_id == requester_id)
        if receiver_id is not None:
            query = query.where(FriendshipRequest.receiver_id == receiver_id)
        if status is not None:
            query = query.where(FriendshipRequest.status == status)
        with _store_errors("listing friend requests"):
            result = await self.db.execute(
                query.order_by(FriendshipRequest.created_at.desc(), FriendshipRequest.id.desc())
            )
        return list(result.scalars().all())

    async def insert_request(
        self,
        requester_id: uuid.UUID,
        receiver_id: uuid.UUID,
        status: str = PENDING,
        created_at: datetime | None = None,
    ) -> FriendshipRequest:
        now = utcnow()
        request = FriendshipRequest(
            requester_id=requester_id,
            receiver_id=receiver_id,
            status=status,
            created_at=created_at or now,
            updated_at=now,
        )
        self.db.add(request)
        with _store_errors("inserting a friend request"):
            try:
                await self.db.flush()
            except IntegrityError as exc:
                await self.db.rollback()
                # Only a row for the same ordered pair makes this a duplicate
                if await self.find_request(requester_id, receiver_id) is None:
                    raise
                logger.info(
                    "Friend request %s -> %s already exists", requester_id, receiver_id
                )
                raise DuplicateRequestError() from exc
            await self.db.refresh(request)
        return request

    async def update_request_status(
        self, request: FriendshipRequest, status: str
    ) -> FriendshipRequest:
        request.status = status
        request.updated_at = utcnow()
        with _store_errors("updating a friend request"):
            await self.db.flush()
        return request

    # ── Friendships ──────────────────────────────────────────────────

    async def get_friendship_for_pair(
        self, user_a: uuid.UUID, user_b: uuid.UUID
    ) -> Friendship | None:
        # Either column order, in case of rows written before canonical ordering
        query = (
            select(Friendship)
            .where(_between(Friendship.user_id_1, Friendship.user_id_2, user_a, user_b))
            .order_by(Friendship.id)
            .limit(1)
        )
        with _store_errors("looking up a friendship"):
            result = await self.db.execute(query)
        return result.scalars().first()

    async def list_friendships(self, user_id: uuid.UUID) -> list[Friendship]:
        query = select(Friendship).where(
            or_(
                Friendship.user_id_1 == user_id,
                Friendship.user_id_2 == user_id,
            )
        )
        with _store_errors("listing friendships"):
            result = await self.db.execute(query.order_by(Friendship.created_at.desc()))
        return list(result.scalars().all())

    async def insert_friendship(self, user_a: uuid.UUID, user_b: uuid.UUID) -> Friendship:
        uid1, uid2 = canonical_pair(user_a, user_b)
        friendship = Friendship(user_id_1=uid1, user_id_2=uid2)
        self.db.add(friendship)
        with _store_errors("inserting a friendship"):
            try:
                await self.db.flush()
            except IntegrityError as exc:
                await self.db.rollback()
                if await self.get_friendship_for_pair(uid1, uid2) is None:
                    raise
                logger.info("Friendship %s <-> %s already exists", uid1, uid2)
                raise AlreadyFriendsError() from exc
            await self.db.refresh(friendship)
        return friendship

    async def delete_friendship(self, friendship: Friendship) -> None:
        with _store_errors("deleting a friendship"):
            await self.db.delete(friendship)
            await self.db.flush()

    async def adjust_friend_count(self, user_id: uuid.UUID, delta: int) -> None:
        query = (
            update(User)
            .where(User.id == user_id)
            .values(friend_count=User.friend_count + delta)
        )
        if delta < 0:
            query = query.where(User.friend_count >= -delta)
        with _store_errors("updating a friend counter"):
            await self.db.execute(query)

    async def get_user(self, user_id: uuid.UUID) -> User | None:
        with _store_errors("loading a user"):
            return await self.db.get(User, user_id)

    # ── Unit of work ─────────────────────────────────────────────────

    def savepoint(self):
        """Nested transaction; a failure inside it leaves the outer unit of work usable."""
        return self.db.begin_nested()

    async def refresh(self, instance) -> None:
        with _store_errors("re-reading a record"):
            await self.db.refresh(instance)

    async def commit(self) -> None:
        with _store_errors("committing"):
            await self.db.commit()

    async def rollback(self) -> None:
        with _store_errors("rolling back"):
            await self.db.rollback()

import logging
import uuid

from friendgraph.exceptions import (
    AlreadyFriendsError,
    DuplicateRequestError,
    ReversePendingExistsError,
    SelfRequestError,
)
from friendgraph.models.friendship_request import (
    ACCEPTED,
    PENDING,
    TERMINATED_STATUSES,
    FriendshipRequest,
)
from friendgraph.services.pair_locks import PairLocks
from friendgraph.services.relationship_store import RelationshipStore

logger = logging.getLogger(__name__)


class RequestReconciler:
    """Decides whether a friend request submission creates, reuses or fails.

    Checks run in a fixed order and the first match wins:

    1. an existing friendship for the pair fails with AlreadyFriendsError;
    2. a row for the same ordered pair that is pending fails with
       DuplicateRequestError, one that is accepted fails with
       AlreadyFriendsError, and a rejected or deleted row is reactivated;
    3. a pending request in the opposite direction fails with
       ReversePendingExistsError;
    4. otherwise a new pending row is inserted.

    The ordered pair holds at most one row, so step 2 is a single lookup over
    all statuses. Rows with any other status are reactivated after the
    reverse check, which keeps legacy data usable.
    """

    def __init__(self, store: RelationshipStore, locks: PairLocks):
        self.store = store
        self.locks = locks

    async def submit(
        self, requester_id: uuid.UUID, receiver_id: uuid.UUID
    ) -> FriendshipRequest:
        if requester_id == receiver_id:
            raise SelfRequestError()

        async with self.locks.hold(requester_id, receiver_id):
            request = await self._reconcile(requester_id, receiver_id)
            await self.store.commit()
        return request

    async def _reconcile(
        self, requester_id: uuid.UUID, receiver_id: uuid.UUID
    ) -> FriendshipRequest:
        if await self.store.get_friendship_for_pair(requester_id, receiver_id):
            raise AlreadyFriendsError()

        existing = await self.store.find_request(requester_id, receiver_id)
        if existing is not None:
            if existing.status == PENDING:
                raise DuplicateRequestError()
            if existing.status == ACCEPTED:
                # Accepted without a friendship row: inconsistent legacy data
                logger.warning(
                    "Request %s is accepted but %s and %s have no friendship",
                    existing.id,
                    requester_id,
                    receiver_id,
                )
                raise AlreadyFriendsError()
            if existing.status in TERMINATED_STATUSES:
                return await self._reactivate(existing)

        reverse = await self.store.find_request(
            receiver_id, requester_id, statuses=(PENDING,)
        )
        if reverse is not None:
            raise ReversePendingExistsError()

        if existing is not None:
            return await self._reactivate(existing)

        request = await self.store.insert_request(requester_id, receiver_id)
        logger.info(
            "Friend request %s created: %s -> %s", request.id, requester_id, receiver_id
        )
        return request

    async def _reactivate(self, request: FriendshipRequest) -> FriendshipRequest:
        previous = request.status
        await self.store.update_request_status(request, PENDING)
        logger.info(
            "Friend request %s reactivated from %s: %s -> %s",
            request.id,
            previous,
            request.requester_id,
            request.receiver_id,
        )
        return request

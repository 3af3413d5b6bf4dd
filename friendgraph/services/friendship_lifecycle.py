import logging
import uuid
from datetime import datetime

import sentry_sdk

from friendgraph.exceptions import (
    FriendshipError,
    FriendshipNotFoundError,
    RequestNotRespondableError,
    StorePersistenceError,
)
from friendgraph.models.friendship import Friendship
from friendgraph.models.friendship_request import (
    ACCEPTED,
    DELETED,
    PENDING,
    REJECTED,
    RESPONSE_DECISIONS,
    FriendshipRequest,
)
from friendgraph.services.pair_locks import PairLocks
from friendgraph.services.relationship_store import RelationshipStore

logger = logging.getLogger(__name__)


class FriendshipLifecycle:
    """Moves requests to accepted/rejected and tears friendships down."""

    def __init__(self, store: RelationshipStore, locks: PairLocks):
        self.store = store
        self.locks = locks

    async def respond(
        self, request_id: int, responder_id: uuid.UUID, decision: str
    ) -> Friendship | None:
        """Answer a pending request addressed to ``responder_id``.

        Accepting creates the friendship and rejects every other pending
        request between the two users, in either direction. Returns the new
        friendship, or None for a rejection.
        """
        if decision not in RESPONSE_DECISIONS:
            raise ValueError(f"Decision must be one of: {', '.join(RESPONSE_DECISIONS)}")

        request = await self.store.get_request(request_id)
        if request is None or request.receiver_id != responder_id:
            raise RequestNotRespondableError()
        requester_id, receiver_id = request.requester_id, request.receiver_id

        async with self.locks.hold(requester_id, receiver_id):
            # A competing response may have landed before we got the lock
            await self.store.refresh(request)
            if request.status != PENDING:
                raise RequestNotRespondableError()

            if decision == REJECTED:
                await self.store.update_request_status(request, REJECTED)
                await self.store.commit()
                logger.info(
                    "Friend request %s rejected: %s -> %s",
                    request_id,
                    requester_id,
                    receiver_id,
                )
                return None

            friendship = await self._accept(request, requester_id, receiver_id)
            await self.store.commit()

        logger.info(
            "Friend request %s accepted, friendship %s created for %s and %s",
            request_id,
            friendship.id,
            requester_id,
            receiver_id,
        )
        return friendship

    async def _accept(
        self,
        request: FriendshipRequest,
        requester_id: uuid.UUID,
        receiver_id: uuid.UUID,
    ) -> Friendship:
        await self.store.update_request_status(request, ACCEPTED)
        # Raises AlreadyFriendsError (after rollback) if the pair is already taken
        friendship = await self.store.insert_friendship(requester_id, receiver_id)
        await self.store.adjust_friend_count(requester_id, 1)
        await self.store.adjust_friend_count(receiver_id, 1)

        competing = await self.store.find_requests_between(
            requester_id, receiver_id, status=PENDING, exclude_id=request.id
        )
        for other in competing:
            await self.store.update_request_status(other, REJECTED)
            logger.info(
                "Friend request %s auto-rejected after %s was accepted",
                other.id,
                request.id,
            )
        return friendship

    async def remove(self, user_id: uuid.UUID, friend_id: uuid.UUID) -> None:
        """Delete the friendship and leave a ``deleted`` request behind.

        The deletion is committed on its own before the audit row is written.
        A failed audit write is logged and reported, never raised.
        """
        async with self.locks.hold(user_id, friend_id):
            friendship = await self.store.get_friendship_for_pair(user_id, friend_id)
            if friendship is None:
                raise FriendshipNotFoundError()
            friendship_id = friendship.id
            since = friendship.created_at

            await self.store.delete_friendship(friendship)
            await self.store.adjust_friend_count(user_id, -1)
            await self.store.adjust_friend_count(friend_id, -1)
            await self.store.commit()
            logger.info(
                "Friendship %s between %s and %s removed", friendship_id, user_id, friend_id
            )

            try:
                await self._record_removal(user_id, friend_id, since)
                await self.store.commit()
            except FriendshipError:
                logger.exception(
                    "Could not write removal audit record for %s and %s",
                    user_id,
                    friend_id,
                )
                sentry_sdk.capture_exception()
                await self._discard_audit()

    async def _record_removal(
        self, user_id: uuid.UUID, friend_id: uuid.UUID, since: datetime
    ) -> None:
        accepted = await self.store.find_requests_between(
            user_id, friend_id, status=ACCEPTED
        )
        if accepted:
            for request in accepted:
                await self.store.update_request_status(request, DELETED)
            return

        # The friendship has no originating request; the pair still gets one.
        existing = await self.store.find_request(user_id, friend_id)
        if existing is not None:
            await self.store.update_request_status(existing, DELETED)
            return
        audit = await self.store.insert_request(
            user_id, friend_id, status=DELETED, created_at=since
        )
        logger.info(
            "Synthesised deleted request %s for former friends %s and %s",
            audit.id,
            user_id,
            friend_id,
        )

    async def _discard_audit(self) -> None:
        try:
            await self.store.rollback()
        except StorePersistenceError:
            logger.warning("Rollback after a failed removal audit write also failed")

import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from friendgraph.models.friendship import Friendship
from friendgraph.models.friendship_request import FriendshipRequest
from friendgraph.services.friendship_lifecycle import FriendshipLifecycle
from friendgraph.services.pair_locks import PairLocks
from friendgraph.services.relationship_queries import RelationshipQueryService
from friendgraph.services.relationship_store import RelationshipStore
from friendgraph.services.request_reconciler import RequestReconciler
from friendgraph.services.user_service import SqlMutualFriendCounter, SqlProfileResolver


class FriendshipService:
    """Everything a request handler needs, wired over one database session."""

    def __init__(
        self,
        db: AsyncSession,
        locks: PairLocks,
        mutual_counter=None,
        profile_resolver=None,
    ):
        self.store = RelationshipStore(db)
        self.reconciler = RequestReconciler(self.store, locks)
        self.lifecycle = FriendshipLifecycle(self.store, locks)
        self.queries = RelationshipQueryService(
            self.store,
            mutual_counter or SqlMutualFriendCounter(db),
            profile_resolver or SqlProfileResolver(db),
        )

    async def submit(
        self, requester_id: uuid.UUID, receiver_id: uuid.UUID
    ) -> FriendshipRequest:
        if await self.store.get_user(receiver_id) is None:
            raise ValueError("User not found")
        return await self.reconciler.submit(requester_id, receiver_id)

    async def respond(
        self, request_id: int, responder_id: uuid.UUID, decision: str
    ) -> Friendship | None:
        return await self.lifecycle.respond(request_id, responder_id, decision)

    async def remove(self, user_id: uuid.UUID, friend_id: uuid.UUID) -> None:
        await self.lifecycle.remove(user_id, friend_id)

    async def list_incoming(self, user_id: uuid.UUID) -> list[dict]:
        return await self.queries.list_incoming(user_id)

    async def list_outgoing(self, user_id: uuid.UUID) -> list[dict]:
        return await self.queries.list_outgoing(user_id)

    async def list_friends(self, user_id: uuid.UUID) -> list[dict]:
        return await self.queries.list_friends(user_id)

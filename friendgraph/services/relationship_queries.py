import logging
import uuid
from collections.abc import Iterable

from friendgraph.models.friendship_request import PENDING
from friendgraph.services.relationship_store import RelationshipStore

logger = logging.getLogger(__name__)


class RelationshipQueryService:
    """Read side: request inboxes and friend lists. Never writes.

    Profile and mutual-friend lookups are best effort; when they fail the
    lists are still returned, with profiles missing and counts at zero. Each
    lookup runs in its own savepoint so one failed statement does not abort
    the rest of the request.
    """

    def __init__(self, store: RelationshipStore, mutual_counter, profile_resolver):
        self.store = store
        self.mutual_counter = mutual_counter
        self.profile_resolver = profile_resolver

    async def list_incoming(self, user_id: uuid.UUID) -> list[dict]:
        requests = await self.store.list_requests(receiver_id=user_id, status=PENDING)
        profiles = await self._profiles(r.requester_id for r in requests)

        incoming = []
        for request in requests:
            incoming.append({
                **request.to_dict(),
                "requester": profiles.get(request.requester_id),
                "mutual_friends_count": await self._mutual_count(
                    user_id, request.requester_id
                ),
            })
        return incoming

    async def list_outgoing(self, user_id: uuid.UUID) -> list[dict]:
        requests = await self.store.list_requests(requester_id=user_id, status=PENDING)
        profiles = await self._profiles(r.receiver_id for r in requests)
        return [
            {**request.to_dict(), "receiver": profiles.get(request.receiver_id)}
            for request in requests
        ]

    async def list_friends(self, user_id: uuid.UUID) -> list[dict]:
        friendships = await self.store.list_friendships(user_id)
        since = {f.other(user_id): f.created_at for f in friendships}
        if not since:
            return []

        profiles = await self._profiles(since)
        return [
            {**profiles.get(friend_id, {"id": friend_id}), "since": created_at}
            for friend_id, created_at in since.items()
        ]

    async def _profiles(self, ids: Iterable[uuid.UUID]) -> dict[uuid.UUID, dict]:
        ids = set(ids)
        if not ids:
            return {}
        try:
            async with self.store.savepoint():
                return await self.profile_resolver.resolve(ids)
        except Exception:
            logger.warning(
                "Profile lookup failed for %d users, returning ids only",
                len(ids),
                exc_info=True,
            )
            return {}

    async def _mutual_count(self, user_a: uuid.UUID, user_b: uuid.UUID) -> int:
        try:
            async with self.store.savepoint():
                return await self.mutual_counter.count(user_a, user_b)
        except Exception:
            logger.warning(
                "Mutual friend count failed for %s and %s", user_a, user_b, exc_info=True
            )
            return 0
